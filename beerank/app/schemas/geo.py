"""
Shared geographic schemas.
"""

from pydantic import BaseModel, Field


class Coordinate(BaseModel):
    """WGS84 point in decimal degrees."""
    latitude: float = Field(..., description="Latitude in [-90, 90]")
    longitude: float = Field(..., description="Longitude in [-180, 180]")
