"""
Taxi rank Pydantic schemas.

Defines request and response models for rank management and proximity search.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List


class TaxiRankCreate(BaseModel):
    """Schema for creating a new taxi rank."""
    name: str = Field(..., min_length=1, max_length=255, description="Rank name")
    description: Optional[str] = None
    latitude: float = Field(..., ge=-90, le=90, description="Latitude coordinate")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude coordinate")
    address: Optional[str] = None
    city: Optional[str] = Field(None, max_length=100)
    province: Optional[str] = Field(None, max_length=100)
    capacity: int = Field(10, ge=0, description="Number of taxis the rank holds")
    contact_number: Optional[str] = Field(None, max_length=20)


class TaxiRankUpdate(BaseModel):
    """Schema for patching a taxi rank. Only fields that are sent are applied."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    address: Optional[str] = None
    city: Optional[str] = Field(None, max_length=100)
    province: Optional[str] = Field(None, max_length=100)
    capacity: Optional[int] = Field(None, ge=0)
    contact_number: Optional[str] = Field(None, max_length=20)
    is_active: Optional[bool] = None

    @field_validator("name", "latitude", "longitude", "capacity", "is_active")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("field cannot be null")
        return value


class TaxiRankResponse(BaseModel):
    """Schema for taxi rank response."""
    id: int
    name: str
    description: Optional[str]
    latitude: float
    longitude: float
    address: Optional[str]
    city: Optional[str]
    province: Optional[str]
    capacity: int
    contact_number: Optional[str]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TaxiRankListResponse(BaseModel):
    """Schema for paginated rank list."""
    ranks: List[TaxiRankResponse]
    total: int
    page: int
    page_size: int


class NearbyTaxiRank(BaseModel):
    rank: TaxiRankResponse
    distance_km: float


class NearbyTaxiRankResponse(BaseModel):
    """Ranks within a radius, nearest first."""
    results: List[NearbyTaxiRank]
    count: int
    radius_m: float
