"""
Taxi Rank API Endpoints.

Rank maintenance and proximity search.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, Response, status
from beerank.app.core.dependencies import get_planning_service
from beerank.app.domain.geo.proximity import GeoPoint
from beerank.app.schemas.taxi_rank import (
    TaxiRankCreate,
    TaxiRankUpdate,
    TaxiRankResponse,
    TaxiRankListResponse,
    NearbyTaxiRank,
    NearbyTaxiRankResponse,
)
from beerank.app.services.planning import JourneyPlanningService

router = APIRouter(prefix="/ranks", tags=["Taxi Ranks"])


@router.post("", response_model=TaxiRankResponse, status_code=status.HTTP_201_CREATED)
async def create_rank(
    rank_data: TaxiRankCreate,
    service: JourneyPlanningService = Depends(get_planning_service)
):
    """Create a new taxi rank."""
    rank = await service.create_rank(rank_data.model_dump())
    return TaxiRankResponse.model_validate(rank)


@router.get("", response_model=TaxiRankListResponse)
async def list_ranks(
    search: Optional[str] = Query(None, description="Match on name or address"),
    city: Optional[str] = None,
    province: Optional[str] = None,
    include_inactive: bool = False,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    service: JourneyPlanningService = Depends(get_planning_service)
):
    """List and search taxi ranks (active only by default)."""
    ranks, total = await service.list_ranks(
        search=search,
        city=city,
        province=province,
        include_inactive=include_inactive,
        skip=(page - 1) * page_size,
        limit=page_size
    )
    return TaxiRankListResponse(
        ranks=[TaxiRankResponse.model_validate(rank) for rank in ranks],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/nearby", response_model=NearbyTaxiRankResponse)
async def nearby_ranks(
    lat: float = Query(..., description="Latitude"),
    lng: float = Query(..., description="Longitude"),
    radius_m: float = Query(2000, description="Search radius in meters"),
    service: JourneyPlanningService = Depends(get_planning_service)
):
    """
    Active ranks within ``radius_m`` of a point, nearest first.

    Coordinates are validated by the proximity index rather than the query
    parser so out-of-range values report ERR_GEO_001.
    """
    results = await service.find_nearby_ranks(GeoPoint(lat, lng), radius_m)
    return NearbyTaxiRankResponse(
        results=[
            NearbyTaxiRank(rank=TaxiRankResponse.model_validate(rank), distance_km=round(distance, 3))
            for rank, distance in results
        ],
        count=len(results),
        radius_m=radius_m
    )


@router.get("/{rank_id}", response_model=TaxiRankResponse)
async def get_rank(
    rank_id: int,
    service: JourneyPlanningService = Depends(get_planning_service)
):
    """Get a taxi rank by id (active or not)."""
    rank = await service.get_rank(rank_id)
    return TaxiRankResponse.model_validate(rank)


@router.patch("/{rank_id}", response_model=TaxiRankResponse)
async def update_rank(
    rank_id: int,
    rank_data: TaxiRankUpdate,
    service: JourneyPlanningService = Depends(get_planning_service)
):
    """Apply the fields present in the request body."""
    rank = await service.update_rank(rank_id, rank_data.model_dump(exclude_unset=True))
    return TaxiRankResponse.model_validate(rank)


@router.patch("/{rank_id}/deactivate", response_model=TaxiRankResponse)
async def deactivate_rank(
    rank_id: int,
    service: JourneyPlanningService = Depends(get_planning_service)
):
    """Soft-delete a rank; it stops appearing in searches and plans."""
    rank = await service.deactivate_rank(rank_id)
    return TaxiRankResponse.model_validate(rank)


@router.delete("/{rank_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rank(
    rank_id: int,
    service: JourneyPlanningService = Depends(get_planning_service)
):
    """Hard-delete a rank. Rejected while any route references it."""
    await service.delete_rank(rank_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
