"""
Taxi rank database model.

A rank is a physical pickup point for minibus taxis and the node type of
the route graph.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, Text, CheckConstraint
from sqlalchemy.sql import func
from beerank.app.db.session import Base


class TaxiRank(Base):
    """
    Taxi rank model.

    Ranks are soft-deactivated; hard delete is only allowed while no
    route references the rank.
    """
    __tablename__ = "taxi_ranks"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Rank details
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True, index=True)
    province = Column(String(100), nullable=True)
    capacity = Column(Integer, default=10, nullable=False)
    contact_number = Column(String(20), nullable=True)

    # Geolocation (WGS84 decimal degrees)
    latitude = Column(Float, nullable=False, index=True)
    longitude = Column(Float, nullable=False, index=True)

    # Status (soft delete)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("latitude >= -90 AND latitude <= 90", name="ck_taxi_ranks_latitude"),
        CheckConstraint("longitude >= -180 AND longitude <= 180", name="ck_taxi_ranks_longitude"),
        CheckConstraint("capacity >= 0", name="ck_taxi_ranks_capacity"),
    )

    def __repr__(self):
        return f"<TaxiRank(id={self.id}, name='{self.name}', active={self.is_active})>"
