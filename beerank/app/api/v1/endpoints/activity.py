"""
Activity API Endpoints.

Read access to the commuter activity trail.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from beerank.app.db.session import get_db
from beerank.app.schemas.activity import ActivityTrailResponse, UserActivityResponse
from beerank.app.services.activity import get_activity_trail

router = APIRouter(prefix="/activity", tags=["Activity"])


@router.get("", response_model=ActivityTrailResponse)
async def list_activity(
    user_id: Optional[int] = Query(None, description="Filter by acting user"),
    activity_type: Optional[str] = Query(None, description="Filter by activity type"),
    limit: int = Query(100, ge=1, le=500, description="Maximum records to return"),
    db: AsyncSession = Depends(get_db)
):
    """
    Get the activity trail with optional filtering.

    Route withdrawals are recorded without a user.
    """
    activities = await get_activity_trail(db=db, user_id=user_id, activity_type=activity_type, limit=limit)

    return ActivityTrailResponse(
        activities=[UserActivityResponse.model_validate(a) for a in activities],
        total=len(activities)
    )
