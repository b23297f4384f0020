"""
Service dependencies for FastAPI.

Builds the per-request JourneyPlanningService from its collaborators. The
route graph cache lives on ``app.state`` so it outlives individual requests.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from beerank.app.core.config import settings
from beerank.app.core.redis_client import get_redis
from beerank.app.db.session import get_db
from beerank.app.domain.routing.graph_cache import RouteGraphCache
from beerank.app.services.planning import JourneyPlanningService


def get_graph_cache(request: Request) -> RouteGraphCache:
    """Process-wide route graph cache."""
    return request.app.state.graph_cache


async def get_planning_service(
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
    graph_cache: RouteGraphCache = Depends(get_graph_cache)
) -> JourneyPlanningService:
    """
    FastAPI dependency for the journey planning facade.

    Args:
        db: Database session for this request
        redis: Redis client holding the shared graph version
        graph_cache: Process-wide graph snapshot cache

    Returns:
        JourneyPlanningService bound to the request's session
    """
    return JourneyPlanningService(db, graph_cache, redis=redis, config=settings)
