"""
Journey database model.

A journey is a persisted planning result owned by a user. It exclusively
owns its route connections.
"""

import uuid

from sqlalchemy import (
    Column, Integer, String, DateTime, Float, Text, JSON, Enum, ForeignKey, CheckConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from beerank.app.db.session import Base
from beerank.app.models.enums import JourneyType, JourneyStatus, enum_values
from beerank.app.models.route_connection import RouteConnection


def generate_journey_id() -> str:
    return str(uuid.uuid4())


class Journey(Base):
    """
    Journey model.

    Lifecycle: planned -> active -> completed, with cancellation allowed
    from planned or active. A no_route_found journey carries hop_count 0
    and zero totals.
    """
    __tablename__ = "journeys"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    journey_id = Column(String(36), unique=True, nullable=False, index=True, default=generate_journey_id)

    # Ownership
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    # Endpoints
    origin_rank_id = Column(Integer, ForeignKey('taxi_ranks.id'), nullable=False)
    destination_rank_id = Column(Integer, ForeignKey('taxi_ranks.id'), nullable=False)

    # Aggregates over the connections
    total_fare = Column(Float, nullable=False, default=0)
    total_duration_minutes = Column(Integer, nullable=False, default=0)
    total_distance_km = Column(Float, nullable=False, default=0)
    hop_count = Column(Integer, nullable=False, default=0)
    route_path = Column(JSON, nullable=False, default=list)

    journey_type = Column(
        Enum(JourneyType, name="journey_type", values_callable=enum_values),
        nullable=False,
    )
    status = Column(
        Enum(JourneyStatus, name="journey_status", values_callable=enum_values),
        default=JourneyStatus.PLANNED,
        nullable=False,
        index=True,
    )

    # Lifecycle timestamps
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    # Feedback (only once completed)
    rating = Column(Integer, nullable=True)
    feedback = Column(Text, nullable=True)
    rated_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    connections = relationship(
        RouteConnection,
        back_populates="journey",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by=RouteConnection.sequence_order,
    )

    __table_args__ = (
        CheckConstraint("hop_count >= 0", name="ck_journeys_hop_count"),
        CheckConstraint("total_fare >= 0", name="ck_journeys_total_fare"),
        CheckConstraint("rating IS NULL OR (rating >= 1 AND rating <= 5)", name="ck_journeys_rating"),
    )

    def __repr__(self):
        return f"<Journey(journey_id={self.journey_id}, type='{self.journey_type.value}', status='{self.status.value}')>"
