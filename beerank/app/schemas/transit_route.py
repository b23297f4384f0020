"""
Transit route Pydantic schemas.

Defines request and response models for route management.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime
from typing import Optional, List
from beerank.app.models.enums import RouteType


class TransitRouteCreate(BaseModel):
    """Schema for creating a new transit route (directed)."""
    origin_rank_id: int
    destination_rank_id: int
    route_name: str = Field(..., min_length=1, max_length=255)
    from_location: str = Field(..., min_length=1, max_length=255, description="Origin as written on signs")
    to_location: str = Field(..., min_length=1, max_length=255, description="Destination as written on signs")
    fare: float = Field(..., ge=0)
    duration_minutes: Optional[int] = Field(None, ge=0)
    distance_km: Optional[float] = Field(None, ge=0)
    route_type: RouteType = RouteType.TAXI
    is_direct: bool = True
    frequency_minutes: int = Field(30, ge=0, description="Minutes between departures")

    @model_validator(mode="after")
    def check_distinct_ranks(self):
        if self.origin_rank_id == self.destination_rank_id:
            raise ValueError("origin_rank_id and destination_rank_id must differ")
        return self


class TransitRouteUpdate(BaseModel):
    """Schema for patching a route. Endpoints are fixed; create a new route instead."""
    route_name: Optional[str] = Field(None, min_length=1, max_length=255)
    from_location: Optional[str] = Field(None, min_length=1, max_length=255)
    to_location: Optional[str] = Field(None, min_length=1, max_length=255)
    fare: Optional[float] = Field(None, ge=0)
    duration_minutes: Optional[int] = Field(None, ge=0)
    distance_km: Optional[float] = Field(None, ge=0)
    route_type: Optional[RouteType] = None
    is_direct: Optional[bool] = None
    frequency_minutes: Optional[int] = Field(None, ge=0)

    @field_validator(
        "route_name", "from_location", "to_location", "fare",
        "route_type", "is_direct", "frequency_minutes"
    )
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("field cannot be null")
        return value


class TransitRouteResponse(BaseModel):
    """Schema for transit route response."""
    id: int
    origin_rank_id: int
    destination_rank_id: int
    route_name: str
    from_location: str
    to_location: str
    fare: float
    duration_minutes: Optional[int]
    distance_km: Optional[float]
    route_type: RouteType
    is_direct: bool
    frequency_minutes: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TransitRouteListResponse(BaseModel):
    """Schema for paginated route list."""
    routes: List[TransitRouteResponse]
    total: int
    page: int
    page_size: int


class RouteWithdrawalResponse(BaseModel):
    """Result of deactivating a route."""
    route: TransitRouteResponse
    cancelled_journeys: int
