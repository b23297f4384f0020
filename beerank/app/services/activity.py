"""
User activity service.

Append-only record of commuter actions, written after the action itself
has been committed.
"""

import logging
from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from beerank.app.models.user_activity import UserActivity

logger = logging.getLogger("beerank.activity")


# Activity type constants
class ActivityAction:
    """Standardized activity type constants."""
    JOURNEY_CREATED = "JOURNEY_CREATED"
    JOURNEY_STARTED = "JOURNEY_STARTED"
    JOURNEY_COMPLETED = "JOURNEY_COMPLETED"
    JOURNEY_CANCELLED = "JOURNEY_CANCELLED"
    JOURNEY_RATED = "JOURNEY_RATED"
    JOURNEY_DELETED = "JOURNEY_DELETED"

    SIGN_SUBMITTED = "SIGN_SUBMITTED"
    SIGN_VERIFIED = "SIGN_VERIFIED"

    ROUTE_WITHDRAWN = "ROUTE_WITHDRAWN"


async def record_activity(
    db: AsyncSession,
    activity_type: str,
    user_id: Optional[int] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[Any] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> UserActivity:
    """
    Record a user activity.

    Args:
        db: Database session
        activity_type: What happened (use ActivityAction constants)
        user_id: Acting user, None for anonymous or system actions
        entity_type: Kind of entity affected ("journey", "hiking_sign", ...)
        entity_id: Identifier of the affected entity
        metadata: Additional context as JSON

    Returns:
        Created UserActivity instance
    """
    activity = UserActivity(
        user_id=user_id,
        activity_type=activity_type,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta_data=metadata
    )

    db.add(activity)
    await db.commit()
    await db.refresh(activity)

    logger.debug("Activity %s by user %s on %s %s", activity_type, user_id, entity_type, entity_id)
    return activity


async def get_activity_trail(
    db: AsyncSession,
    user_id: Optional[int] = None,
    activity_type: Optional[str] = None,
    limit: int = 100
) -> list[UserActivity]:
    """
    Retrieve activities, newest first, with optional filtering.

    Args:
        db: Database session
        user_id: Filter by acting user
        activity_type: Filter by activity type
        limit: Maximum number of records to return

    Returns:
        List of UserActivity records
    """
    query = select(UserActivity)

    if user_id is not None:
        query = query.where(UserActivity.user_id == user_id)
    if activity_type:
        query = query.where(UserActivity.activity_type == activity_type)

    query = query.order_by(desc(UserActivity.created_at), desc(UserActivity.id)).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())
