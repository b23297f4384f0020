"""
User Activity Database Model.

Append-only trail of commuter actions (journeys planned, signs reported
and verified).
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from beerank.app.db.session import Base


class UserActivity(Base):
    """
    Activity log entry.

    Activities logged:
    - JOURNEY_CREATED / JOURNEY_STARTED / JOURNEY_COMPLETED / JOURNEY_CANCELLED
    - JOURNEY_RATED
    - SIGN_SUBMITTED / SIGN_VERIFIED
    """
    __tablename__ = "user_activities"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who (None for anonymous)
    user_id = Column(Integer, index=True, nullable=True)

    # What
    activity_type = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(String(64), nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<UserActivity(id={self.id}, type='{self.activity_type}', user={self.user_id})>"
