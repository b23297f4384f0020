"""
Hiking sign database model.

Community-reported photo of an official fare board, pinned to a location.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, Text, ForeignKey, CheckConstraint
from sqlalchemy.sql import func
from beerank.app.db.session import Base


class HikingSign(Base):
    """
    Fare sign report.

    verification_count only ever increases; is_verified flips once the
    configured threshold is reached and never flips back.
    """
    __tablename__ = "hiking_signs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Reporter (anonymous reports allowed)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)

    image_url = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    sign_type = Column(String(50), default="fare_board", nullable=False)

    # Geolocation
    latitude = Column(Float, nullable=False, index=True)
    longitude = Column(Float, nullable=False, index=True)
    address = Column(Text, nullable=True)

    # What the sign says
    from_location = Column(String(255), nullable=True)
    to_location = Column(String(255), nullable=True)
    fare_amount = Column(Float, nullable=True)

    # Verification ledger
    verification_count = Column(Integer, default=0, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False, index=True)
    verification_date = Column(DateTime(timezone=True), nullable=True)
    last_updated_by = Column(Integer, ForeignKey('users.id'), nullable=True)

    # Best-effort attachment to the graph
    matched_rank_id = Column(Integer, ForeignKey('taxi_ranks.id'), nullable=True)
    matched_route_id = Column(Integer, ForeignKey('transit_routes.id'), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("verification_count >= 0", name="ck_hiking_signs_verification_count"),
        CheckConstraint("fare_amount IS NULL OR fare_amount >= 0", name="ck_hiking_signs_fare"),
    )

    def __repr__(self):
        return f"<HikingSign(id={self.id}, verified={self.is_verified}, count={self.verification_count})>"
