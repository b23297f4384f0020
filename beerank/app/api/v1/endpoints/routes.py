"""
Transit Route API Endpoints.

Route maintenance. Every mutation invalidates the route graph cache.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from beerank.app.core.dependencies import get_planning_service
from beerank.app.models.enums import RouteType
from beerank.app.schemas.transit_route import (
    TransitRouteCreate,
    TransitRouteUpdate,
    TransitRouteResponse,
    TransitRouteListResponse,
    RouteWithdrawalResponse,
)
from beerank.app.services.planning import JourneyPlanningService

router = APIRouter(prefix="/routes", tags=["Transit Routes"])


@router.post("", response_model=TransitRouteResponse, status_code=status.HTTP_201_CREATED)
async def create_route(
    route_data: TransitRouteCreate,
    service: JourneyPlanningService = Depends(get_planning_service)
):
    """Create a directed route between two active ranks."""
    route = await service.create_route(route_data.model_dump())
    return TransitRouteResponse.model_validate(route)


@router.get("", response_model=TransitRouteListResponse)
async def list_routes(
    rank_id: Optional[int] = Query(None, description="Routes starting or ending at this rank"),
    route_type: Optional[RouteType] = None,
    include_inactive: bool = False,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    service: JourneyPlanningService = Depends(get_planning_service)
):
    routes, total = await service.list_routes(
        rank_id=rank_id,
        route_type=route_type,
        include_inactive=include_inactive,
        skip=(page - 1) * page_size,
        limit=page_size
    )
    return TransitRouteListResponse(
        routes=[TransitRouteResponse.model_validate(route) for route in routes],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{route_id}", response_model=TransitRouteResponse)
async def get_route(
    route_id: int,
    service: JourneyPlanningService = Depends(get_planning_service)
):
    route = await service.get_route(route_id)
    return TransitRouteResponse.model_validate(route)


@router.patch("/{route_id}", response_model=TransitRouteResponse)
async def update_route(
    route_id: int,
    route_data: TransitRouteUpdate,
    service: JourneyPlanningService = Depends(get_planning_service)
):
    """Apply the fields present in the request body."""
    route = await service.update_route(route_id, route_data.model_dump(exclude_unset=True))
    return TransitRouteResponse.model_validate(route)


@router.patch("/{route_id}/deactivate", response_model=RouteWithdrawalResponse)
async def deactivate_route(
    route_id: int,
    service: JourneyPlanningService = Depends(get_planning_service)
):
    """
    Withdraw a route from planning.

    Returns 409 while an active journey is travelling on the route. Planned
    journeys using it are cancelled with reason "route withdrawn".
    """
    route, cancelled = await service.deactivate_route(route_id)
    return RouteWithdrawalResponse(
        route=TransitRouteResponse.model_validate(route),
        cancelled_journeys=cancelled
    )
