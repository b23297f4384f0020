"""
Redis client.

Redis holds the shared route graph version so that every worker process
drops its cached graph after a route is created, updated or withdrawn.
Nothing else is stored there; losing Redis only delays cross-process
invalidation.
"""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from beerank.app.core.config import settings

logger = logging.getLogger("beerank.redis")

redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def get_redis():
    """FastAPI dependency returning the shared client."""
    return redis_client


async def ping_redis() -> bool:
    """True when Redis answers a PING."""
    try:
        return bool(await redis_client.ping())
    except (RedisError, OSError) as exc:
        logger.warning("Redis ping failed: %s", exc)
        return False


async def close_redis() -> None:
    await redis_client.aclose()
