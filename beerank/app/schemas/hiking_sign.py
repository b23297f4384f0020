"""
Hiking sign (fare board) Pydantic schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List


class HikingSignCreate(BaseModel):
    """Schema for reporting a fare sign."""
    user_id: Optional[int] = Field(None, description="Reporter; omit for anonymous reports")
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    image_url: Optional[str] = None
    image_base64: Optional[str] = Field(None, description="Image payload stored through the asset service")
    description: Optional[str] = None
    address: Optional[str] = None
    from_location: Optional[str] = Field(None, max_length=255)
    to_location: Optional[str] = Field(None, max_length=255)
    fare_amount: Optional[float] = Field(None, ge=0)
    sign_type: str = Field("fare_board", max_length=50)


class HikingSignResponse(BaseModel):
    """Schema for fare sign response."""
    id: int
    user_id: Optional[int]
    image_url: Optional[str]
    description: Optional[str]
    sign_type: str
    latitude: float
    longitude: float
    address: Optional[str]
    from_location: Optional[str]
    to_location: Optional[str]
    fare_amount: Optional[float]
    verification_count: int
    is_verified: bool
    verification_date: Optional[datetime]
    last_updated_by: Optional[int]
    matched_rank_id: Optional[int]
    matched_route_id: Optional[int]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class NearbyHikingSign(BaseModel):
    sign: HikingSignResponse
    distance_km: float


class NearbyHikingSignResponse(BaseModel):
    results: List[NearbyHikingSign]
    count: int
    radius_m: float


class HikingSignListResponse(BaseModel):
    signs: List[HikingSignResponse]
    count: int


class SignVerificationRequest(BaseModel):
    verifier_id: int
