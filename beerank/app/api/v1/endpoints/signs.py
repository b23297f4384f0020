"""
Fare Sign API Endpoints.

Community fare-board reports and their verification.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from beerank.app.core.dependencies import get_planning_service
from beerank.app.domain.geo.proximity import GeoPoint
from beerank.app.domain.signs.ledger import SignReport
from beerank.app.schemas.hiking_sign import (
    HikingSignCreate,
    HikingSignResponse,
    HikingSignListResponse,
    NearbyHikingSign,
    NearbyHikingSignResponse,
    SignVerificationRequest,
)
from beerank.app.services.planning import JourneyPlanningService

router = APIRouter(prefix="/signs", tags=["Fare Signs"])


@router.post("", response_model=HikingSignResponse, status_code=status.HTTP_201_CREATED)
async def submit_sign(
    sign_data: HikingSignCreate,
    service: JourneyPlanningService = Depends(get_planning_service)
):
    """
    Report a fare sign.

    The sign starts unverified and is matched to the nearest rank's route
    when one fits.
    """
    sign = await service.submit_fare_sign(SignReport(**sign_data.model_dump()))
    return HikingSignResponse.model_validate(sign)


@router.get("/nearby", response_model=NearbyHikingSignResponse)
async def nearby_signs(
    lat: float = Query(..., description="Latitude"),
    lng: float = Query(..., description="Longitude"),
    radius_m: float = Query(2000, description="Search radius in meters"),
    service: JourneyPlanningService = Depends(get_planning_service)
):
    results = await service.find_nearby_signs(GeoPoint(lat, lng), radius_m)
    return NearbyHikingSignResponse(
        results=[
            NearbyHikingSign(sign=HikingSignResponse.model_validate(sign), distance_km=round(distance, 3))
            for sign, distance in results
        ],
        count=len(results),
        radius_m=radius_m
    )


@router.get("/verified", response_model=HikingSignListResponse)
async def verified_signs(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    service: JourneyPlanningService = Depends(get_planning_service)
):
    signs = await service.list_verified_signs(skip=(page - 1) * page_size, limit=page_size)
    return HikingSignListResponse(
        signs=[HikingSignResponse.model_validate(sign) for sign in signs],
        count=len(signs)
    )


@router.get("/by-location", response_model=HikingSignListResponse)
async def signs_by_location(
    from_location: Optional[str] = None,
    to_location: Optional[str] = None,
    service: JourneyPlanningService = Depends(get_planning_service)
):
    """Signs whose from/to text contains the given fragments."""
    signs = await service.signs_by_location(from_location, to_location)
    return HikingSignListResponse(
        signs=[HikingSignResponse.model_validate(sign) for sign in signs],
        count=len(signs)
    )


@router.get("/{sign_id}", response_model=HikingSignResponse)
async def get_sign(
    sign_id: int,
    service: JourneyPlanningService = Depends(get_planning_service)
):
    sign = await service.get_fare_sign(sign_id)
    return HikingSignResponse.model_validate(sign)


@router.post("/{sign_id}/verify", response_model=HikingSignResponse)
async def verify_sign(
    sign_id: int,
    verification: SignVerificationRequest,
    service: JourneyPlanningService = Depends(get_planning_service)
):
    """
    Corroborate a fare sign.

    Verifying the same sign twice as the same user has no further effect.
    """
    sign = await service.verify_fare_sign(sign_id, verification.verifier_id)
    return HikingSignResponse.model_validate(sign)


@router.post("/{sign_id}/match", response_model=HikingSignResponse)
async def match_sign(
    sign_id: int,
    service: JourneyPlanningService = Depends(get_planning_service)
):
    """Re-run rank/route matching for a sign."""
    sign = await service.match_fare_sign(sign_id)
    return HikingSignResponse.model_validate(sign)
