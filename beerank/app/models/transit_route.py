"""
Transit route database model.

A route is a directed edge between two taxi ranks. The return trip is a
separate row.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Float, Enum, ForeignKey, CheckConstraint, Index
)
from sqlalchemy.sql import func
from beerank.app.db.session import Base
from beerank.app.models.enums import RouteType, enum_values


class TransitRoute(Base):
    """
    Transit route model (graph edge).

    Several routes may connect the same pair of ranks, e.g. different
    operators or fares.
    """
    __tablename__ = "transit_routes"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Endpoints
    origin_rank_id = Column(Integer, ForeignKey('taxi_ranks.id'), nullable=False, index=True)
    destination_rank_id = Column(Integer, ForeignKey('taxi_ranks.id'), nullable=False, index=True)

    # Human readable descriptors (used when matching fare signs)
    route_name = Column(String(255), nullable=False)
    from_location = Column(String(255), nullable=False)
    to_location = Column(String(255), nullable=False)

    # Cost attributes
    fare = Column(Float, nullable=False)
    duration_minutes = Column(Integer, nullable=True)
    distance_km = Column(Float, nullable=True)

    route_type = Column(
        Enum(RouteType, name="route_type", values_callable=enum_values),
        default=RouteType.TAXI,
        nullable=False,
    )
    is_direct = Column(Boolean, default=True, nullable=False)
    frequency_minutes = Column(Integer, default=30, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("origin_rank_id <> destination_rank_id", name="ck_transit_routes_distinct_ranks"),
        CheckConstraint("fare >= 0", name="ck_transit_routes_fare"),
        CheckConstraint("duration_minutes IS NULL OR duration_minutes >= 0", name="ck_transit_routes_duration"),
        CheckConstraint("distance_km IS NULL OR distance_km >= 0", name="ck_transit_routes_distance"),
        CheckConstraint("frequency_minutes >= 0", name="ck_transit_routes_frequency"),
        Index('ix_transit_routes_pair', 'origin_rank_id', 'destination_rank_id'),
    )

    def __repr__(self):
        return (
            f"<TransitRoute(id={self.id}, {self.origin_rank_id}->{self.destination_rank_id}, "
            f"fare={self.fare}, active={self.is_active})>"
        )
