"""
Route graph snapshot cache.

Keeps one immutable RankGraph per process and rebuilds it after a route
mutation. Mutations bump a local generation and a shared Redis counter so
that other worker processes notice on their next read. If Redis is
unreachable the cache falls back to the local generation only.
"""

import asyncio
import logging
from typing import Any, Optional

from redis.exceptions import RedisError

from beerank.app.domain.routing.graph import RankGraph, build_graph

logger = logging.getLogger("beerank.routing.cache")

GRAPH_VERSION_KEY = "route_graph:version"


class RouteGraphCache:
    """
    Rebuild-and-swap cache for the route graph.

    Readers get whatever snapshot is current; a rebuild happens under an
    asyncio.Lock and replaces the reference only once the new graph is
    complete.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._graph: Optional[RankGraph] = None
        self._built_generation = -1
        self._generation = 0
        self._lock = asyncio.Lock()
        self.rebuilds = 0

    async def _shared_version(self, redis: Any) -> Optional[int]:
        if redis is None:
            return None
        try:
            value = await redis.get(GRAPH_VERSION_KEY)
        except (RedisError, OSError) as exc:
            logger.warning("Graph version unavailable from Redis, using local generation: %s", exc)
            return None
        return int(value) if value is not None else 0

    def _is_fresh(self, shared_version: Optional[int]) -> bool:
        if self._graph is None or self._built_generation != self._generation:
            return False
        return shared_version is None or self._graph.version == shared_version

    async def get(self, store: Any, redis: Any = None) -> RankGraph:
        """
        Return the current graph snapshot, rebuilding it if stale.

        Args:
            store: Persistence collaborator exposing ``list_active_routes()``
            redis: Optional async Redis client holding the shared version
        """
        if not self.enabled:
            return build_graph(await store.list_active_routes())

        shared_version = await self._shared_version(redis)
        if self._is_fresh(shared_version):
            return self._graph

        async with self._lock:
            # Another coroutine may have rebuilt while we waited
            if self._is_fresh(shared_version):
                return self._graph

            generation = self._generation
            routes = await store.list_active_routes()
            version = shared_version if shared_version is not None else generation
            graph = build_graph(routes, version=version)

            self._graph = graph
            self._built_generation = generation
            self.rebuilds += 1
            logger.info("Rebuilt route graph v%s with %d edges", version, graph.edge_count)
            return graph

    async def invalidate(self, redis: Any = None) -> None:
        """Mark the snapshot stale here and in every other process."""
        self._generation += 1
        if redis is None:
            return
        try:
            await redis.incr(GRAPH_VERSION_KEY)
        except (RedisError, OSError) as exc:
            logger.warning("Could not publish graph invalidation to Redis: %s", exc)
