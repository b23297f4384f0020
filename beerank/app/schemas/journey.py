"""
Journey Pydantic schemas.

Defines request and response models for planning, persisting and
progressing journeys.
"""

from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Optional, List
from beerank.app.models.enums import JourneyStatus, JourneyType, TransitionAction
from beerank.app.schemas.geo import Coordinate


class PlanRequest(BaseModel):
    """
    Journey planning request.

    Each end is given either as a rank id or as a coordinate, which is
    snapped to the nearest active rank.
    """
    origin_rank_id: Optional[int] = None
    origin: Optional[Coordinate] = None
    destination_rank_id: Optional[int] = None
    destination: Optional[Coordinate] = None
    max_hops: Optional[int] = Field(None, description="Maximum routes to chain; server default when omitted")

    @model_validator(mode="after")
    def check_endpoints(self):
        if (self.origin_rank_id is None) == (self.origin is None):
            raise ValueError("Provide exactly one of origin_rank_id or origin")
        if (self.destination_rank_id is None) == (self.destination is None):
            raise ValueError("Provide exactly one of destination_rank_id or destination")
        return self


class JourneyCreate(PlanRequest):
    """Plan a journey and persist the result for a user."""
    user_id: int


class PlanSegmentResponse(BaseModel):
    sequence_order: int
    route_id: int
    route_name: str
    origin_rank_id: int
    connection_rank_id: int
    fare: float
    duration_minutes: Optional[int]
    distance_km: Optional[float]
    waiting_time_minutes: int

    class Config:
        from_attributes = True


class PlanResponse(BaseModel):
    """Result of planning; journey_type is no_route_found when nothing fits."""
    journey_type: JourneyType
    origin_rank_id: int
    destination_rank_id: int
    hop_count: int
    max_hops: int
    total_fare: float
    total_duration_minutes: int
    total_distance_km: float
    rank_path: List[int]
    segments: List[PlanSegmentResponse]
    reason: Optional[str] = None

    class Config:
        from_attributes = True


class RouteConnectionResponse(BaseModel):
    sequence_order: int
    route_id: int
    connection_rank_id: Optional[int]
    segment_fare: float
    segment_duration_minutes: Optional[int]
    segment_distance_km: Optional[float]
    waiting_time_minutes: int

    class Config:
        from_attributes = True


class JourneyResponse(BaseModel):
    """Schema for journey response."""
    journey_id: str
    user_id: int
    origin_rank_id: int
    destination_rank_id: int
    total_fare: float
    total_duration_minutes: int
    total_distance_km: float
    hop_count: int
    route_path: List[int]
    journey_type: JourneyType
    status: JourneyStatus
    started_at: Optional[datetime]
    completed_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    cancellation_reason: Optional[str]
    rating: Optional[int]
    feedback: Optional[str]
    created_at: datetime
    updated_at: datetime
    connections: List[RouteConnectionResponse] = []

    class Config:
        from_attributes = True


class JourneyListResponse(BaseModel):
    """Schema for paginated journey list."""
    journeys: List[JourneyResponse]
    total: int
    page: int
    page_size: int


class TransitionRequest(BaseModel):
    """Move a journey along its lifecycle."""
    action: TransitionAction
    reason: Optional[str] = Field(None, max_length=1000, description="Required when cancelling")


class RatingRequest(BaseModel):
    rating: int
    feedback: Optional[str] = Field(None, max_length=2000)


class JourneyStatsResponse(BaseModel):
    total_journeys: int
    completed_journeys: int
    cancelled_journeys: int
    average_fare: float
    total_spent: float
    average_duration: float
    total_distance: float
