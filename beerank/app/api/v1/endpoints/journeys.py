"""
Journey API Endpoints.

Planning, persistence and lifecycle of commuter journeys.
"""

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, Response, status
from beerank.app.core.dependencies import get_planning_service
from beerank.app.domain.geo.proximity import GeoPoint
from beerank.app.models.enums import JourneyStatus, JourneyType
from beerank.app.schemas.journey import (
    PlanRequest,
    PlanResponse,
    JourneyCreate,
    JourneyResponse,
    JourneyListResponse,
    JourneyStatsResponse,
    TransitionRequest,
    RatingRequest,
)
from beerank.app.services.planning import JourneyPlanningService

router = APIRouter(prefix="/journeys", tags=["Journeys"])


def _endpoints(request: PlanRequest):
    """Translate the request into rank ids / coordinate pairs."""
    origin = request.origin_rank_id
    if origin is None:
        origin = GeoPoint(request.origin.latitude, request.origin.longitude)
    destination = request.destination_rank_id
    if destination is None:
        destination = GeoPoint(request.destination.latitude, request.destination.longitude)
    return origin, destination


@router.post("/plan", response_model=PlanResponse)
async def plan_journey(
    plan_request: PlanRequest,
    service: JourneyPlanningService = Depends(get_planning_service)
):
    """
    Plan a journey without saving it.

    A journey that cannot be made within ``max_hops`` is returned with
    journey_type ``no_route_found`` and status 200.
    """
    origin, destination = _endpoints(plan_request)
    result = await service.plan_journey(origin, destination, plan_request.max_hops)
    return PlanResponse.model_validate(result)


@router.post("", response_model=JourneyResponse, status_code=status.HTTP_201_CREATED)
async def create_journey(
    journey_data: JourneyCreate,
    service: JourneyPlanningService = Depends(get_planning_service)
):
    """Plan a journey and persist it (status ``planned``) for a user."""
    origin, destination = _endpoints(journey_data)
    journey = await service.plan_and_create_journey(origin, destination, journey_data.user_id, journey_data.max_hops)
    return JourneyResponse.model_validate(journey)


@router.get("", response_model=JourneyListResponse)
async def list_journeys(
    user_id: Optional[int] = None,
    status_filter: Optional[JourneyStatus] = Query(None, alias="status"),
    journey_type: Optional[JourneyType] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    service: JourneyPlanningService = Depends(get_planning_service)
):
    """List journeys, newest first."""
    journeys, total = await service.list_journeys(
        user_id=user_id,
        status=status_filter,
        journey_type=journey_type,
        date_from=date_from,
        date_to=date_to,
        skip=(page - 1) * page_size,
        limit=page_size
    )
    return JourneyListResponse(
        journeys=[JourneyResponse.model_validate(journey) for journey in journeys],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/stats", response_model=JourneyStatsResponse)
async def journey_stats(
    user_id: Optional[int] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    service: JourneyPlanningService = Depends(get_planning_service)
):
    """Totals and averages over journeys, optionally for one user."""
    stats = await service.journey_stats(user_id=user_id, date_from=date_from, date_to=date_to)
    return JourneyStatsResponse(**stats)


@router.get("/{journey_id}", response_model=JourneyResponse)
async def get_journey(
    journey_id: str,
    service: JourneyPlanningService = Depends(get_planning_service)
):
    journey = await service.get_journey(journey_id)
    return JourneyResponse.model_validate(journey)


@router.post("/{journey_id}/transitions", response_model=JourneyResponse)
async def transition_journey(
    journey_id: str,
    transition: TransitionRequest,
    service: JourneyPlanningService = Depends(get_planning_service)
):
    """
    Start, complete or cancel a journey.

    Illegal moves return 409 with ``current_status`` and
    ``allowed_next_states`` in the error details.
    """
    journey = await service.transition_journey(journey_id, transition.action, transition.reason)
    return JourneyResponse.model_validate(journey)


@router.post("/{journey_id}/rating", response_model=JourneyResponse)
async def rate_journey(
    journey_id: str,
    rating_data: RatingRequest,
    service: JourneyPlanningService = Depends(get_planning_service)
):
    """Rate a completed journey (1-5)."""
    journey = await service.rate_journey(journey_id, rating_data.rating, rating_data.feedback)
    return JourneyResponse.model_validate(journey)


@router.delete("/{journey_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_journey(
    journey_id: str,
    service: JourneyPlanningService = Depends(get_planning_service)
):
    await service.delete_journey(journey_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
