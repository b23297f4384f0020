"""
Route connection database model.

One row per hop of a persisted journey, in travel order.
"""

from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from beerank.app.db.session import Base


class RouteConnection(Base):
    """
    A single hop of a journey.

    connection_rank_id is the rank where this hop ends, i.e. the
    destination of route_id and the origin of the next hop's route.
    """
    __tablename__ = "route_connections"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    journey_id = Column(
        String(36),
        ForeignKey('journeys.journey_id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    route_id = Column(Integer, ForeignKey('transit_routes.id'), nullable=False, index=True)
    sequence_order = Column(Integer, nullable=False)
    connection_rank_id = Column(Integer, ForeignKey('taxi_ranks.id'), nullable=True)

    # Segment costs copied from the route at planning time
    segment_fare = Column(Float, nullable=False, default=0)
    segment_duration_minutes = Column(Integer, nullable=True)
    segment_distance_km = Column(Float, nullable=True)
    waiting_time_minutes = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    journey = relationship("Journey", back_populates="connections")

    __table_args__ = (
        UniqueConstraint('journey_id', 'sequence_order', name='uq_route_connections_journey_sequence'),
    )

    def __repr__(self):
        return f"<RouteConnection(journey_id={self.journey_id}, seq={self.sequence_order}, route_id={self.route_id})>"
