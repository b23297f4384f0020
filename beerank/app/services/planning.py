"""
Journey planning service.

Caller-facing facade over the store, the graph cache, the pathfinder, the
journey lifecycle and the fare-sign ledger. One instance per request,
constructed from explicit collaborators.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from beerank.app.core.config import Settings, settings as default_settings
from beerank.app.core.exceptions import (
    RankInUseError,
    ResourceNotFoundError,
    StateError,
    ValidationError,
)
from beerank.app.domain.geo.proximity import GeoPoint
from beerank.app.domain.journeys.lifecycle import JourneyLifecycleManager
from beerank.app.domain.routing.graph_cache import RouteGraphCache
from beerank.app.domain.routing.pathfinder import Endpoint, JourneyPathfinder, PlanResult
from beerank.app.domain.signs.ledger import SignReport, SignVerificationLedger
from beerank.app.models.enums import JourneyStatus, JourneyType, RouteType, TransitionAction
from beerank.app.models.hiking_sign import HikingSign
from beerank.app.models.journey import Journey
from beerank.app.models.taxi_rank import TaxiRank
from beerank.app.models.transit_route import TransitRoute
from beerank.app.services.activity import ActivityAction, record_activity
from beerank.app.services.store import TransitStore

logger = logging.getLogger("beerank.planning")

ROUTE_WITHDRAWN_REASON = "route withdrawn"


class JourneyPlanningService:
    """Entry point for every caller-facing operation."""

    def __init__(
        self,
        db: AsyncSession,
        graph_cache: RouteGraphCache,
        redis: Any = None,
        config: Settings = default_settings,
        uploader=None
    ):
        self.db = db
        self.graph_cache = graph_cache
        self.redis = redis
        self.config = config
        self.store = TransitStore(db)
        self.lifecycle = JourneyLifecycleManager(self.store)

        ledger_kwargs = {}
        if uploader is not None:
            ledger_kwargs["uploader"] = uploader
        self.ledger = SignVerificationLedger(
            self.store,
            threshold=config.sign_verification_threshold,
            match_radius_km=config.sign_match_radius_km,
            retry_attempts=config.verification_retry_attempts,
            **ledger_kwargs
        )

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    async def get_pathfinder(self) -> JourneyPathfinder:
        """Pathfinder over the current graph snapshot and active ranks."""
        ranks = await self.store.list_active_ranks()
        graph = await self.graph_cache.get(self.store, self.redis)
        return JourneyPathfinder(
            graph,
            ranks,
            snap_radius_km=self.config.snap_radius_km,
            max_hops_limit=self.config.max_hops_limit,
            max_explored_labels=self.config.max_explored_labels,
        )

    async def plan_journey(self, origin: Endpoint, destination: Endpoint, max_hops: Optional[int] = None) -> PlanResult:
        """
        Plan between two ranks or coordinates.

        Args:
            origin: Rank id or (latitude, longitude)
            destination: Rank id or (latitude, longitude)
            max_hops: Hop bound; settings.default_max_hops when None
        """
        if max_hops is None:
            max_hops = self.config.default_max_hops
        pathfinder = await self.get_pathfinder()
        return pathfinder.plan_between_points(origin, destination, max_hops)

    async def create_journey(self, plan: PlanResult, user_id: int) -> Journey:
        return await self.lifecycle.create_journey(plan, user_id)

    async def plan_and_create_journey(
        self,
        origin: Endpoint,
        destination: Endpoint,
        user_id: int,
        max_hops: Optional[int] = None
    ) -> Journey:
        plan = await self.plan_journey(origin, destination, max_hops)
        return await self.lifecycle.create_journey(plan, user_id)

    # ------------------------------------------------------------------
    # Journeys
    # ------------------------------------------------------------------

    async def transition_journey(self, journey_id: str, action: TransitionAction, reason: Optional[str] = None) -> Journey:
        return await self.lifecycle.transition(journey_id, action, reason)

    async def rate_journey(self, journey_id: str, rating: Any, feedback: Optional[str] = None) -> Journey:
        return await self.lifecycle.rate_journey(journey_id, rating, feedback)

    async def get_journey(self, journey_id: str) -> Journey:
        return await self.lifecycle.get_journey(journey_id)

    async def list_journeys(
        self,
        user_id: Optional[int] = None,
        status: Optional[JourneyStatus] = None,
        journey_type: Optional[JourneyType] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 50
    ) -> Tuple[List[Journey], int]:
        return await self.lifecycle.list_journeys(user_id, status, journey_type, date_from, date_to, skip, limit)

    async def journey_stats(
        self,
        user_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None
    ) -> Dict[str, Any]:
        return await self.lifecycle.journey_stats(user_id, date_from, date_to)

    async def delete_journey(self, journey_id: str) -> None:
        await self.lifecycle.delete_journey(journey_id)

    # ------------------------------------------------------------------
    # Ranks
    # ------------------------------------------------------------------

    async def find_nearby_ranks(self, point: GeoPoint, radius_meters: float) -> List[Tuple[TaxiRank, float]]:
        return await self.store.list_ranks_near(point, radius_meters)

    async def get_rank(self, rank_id: int) -> TaxiRank:
        rank = await self.store.get_rank_by_id(rank_id)
        if rank is None:
            raise ResourceNotFoundError("TaxiRank", rank_id)
        return rank

    async def list_ranks(self, **filters: Any) -> Tuple[List[TaxiRank], int]:
        return await self.store.list_ranks(**filters)

    async def create_rank(self, data: Dict[str, Any]) -> TaxiRank:
        rank = await self.store.create_rank(data)
        logger.info("Created taxi rank %s (%s)", rank.id, rank.name)
        return rank

    async def update_rank(self, rank_id: int, changes: Dict[str, Any]) -> TaxiRank:
        rank = await self.get_rank(rank_id)
        return await self.store.update_rank(rank, changes)

    async def deactivate_rank(self, rank_id: int) -> TaxiRank:
        rank = await self.get_rank(rank_id)
        rank = await self.store.update_rank(rank, {"is_active": False})
        logger.info("Deactivated taxi rank %s", rank_id)
        return rank

    async def delete_rank(self, rank_id: int) -> None:
        """
        Hard-delete a rank that nothing references.

        Raises:
            RankInUseError: Routes still start or end at the rank
            StateError: Journeys or signs still reference the rank
        """
        rank = await self.get_rank(rank_id)
        route_count = await self.store.count_routes_for_rank(rank_id)
        if route_count:
            raise RankInUseError(rank_id, route_count)
        try:
            await self.store.delete_rank(rank)
        except IntegrityError:
            raise StateError(
                f"Rank {rank_id} is referenced by journeys or fare signs; deactivate it instead",
                error_code="ERR_STATE_004",
                details={"rank_id": rank_id}
            )
        logger.info("Deleted taxi rank %s", rank_id)

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    async def get_route(self, route_id: int) -> TransitRoute:
        route = await self.store.get_route_by_id(route_id)
        if route is None:
            raise ResourceNotFoundError("TransitRoute", route_id)
        return route

    async def list_routes(
        self,
        rank_id: Optional[int] = None,
        route_type: Optional[RouteType] = None,
        include_inactive: bool = False,
        skip: int = 0,
        limit: int = 100
    ) -> Tuple[List[TransitRoute], int]:
        return await self.store.list_routes(rank_id, route_type, include_inactive, skip, limit)

    async def create_route(self, data: Dict[str, Any]) -> TransitRoute:
        """
        Add a directed route between two active ranks.

        Raises:
            ValidationError: Same rank at both ends or an inactive rank
            ResourceNotFoundError: Unknown rank
        """
        if data["origin_rank_id"] == data["destination_rank_id"]:
            raise ValidationError("Route origin and destination must be different ranks")
        for key in ("origin_rank_id", "destination_rank_id"):
            rank = await self.get_rank(data[key])
            if not rank.is_active:
                raise ValidationError(f"Rank {rank.id} is inactive", details={key: rank.id})

        route = await self.store.create_route(data)
        await self.graph_cache.invalidate(self.redis)
        logger.info(
            "Created route %s: %s -> %s (fare %.2f)",
            route.id, route.origin_rank_id, route.destination_rank_id, route.fare
        )
        return route

    async def update_route(self, route_id: int, changes: Dict[str, Any]) -> TransitRoute:
        route = await self.get_route(route_id)
        route = await self.store.update_route(route, changes)
        await self.graph_cache.invalidate(self.redis)
        logger.info("Updated route %s: %s", route_id, sorted(changes))
        return route

    async def deactivate_route(self, route_id: int) -> Tuple[TransitRoute, int]:
        """
        Withdraw a route from planning.

        Planned journeys that use the route are cancelled with reason
        "route withdrawn" in the same transaction.

        Returns:
            (deactivated route, number of journeys cancelled)

        Raises:
            RouteInUseError: An active journey is travelling on the route
        """
        route = await self.get_route(route_id)

        cancelled_ids = await self.store.withdraw_route(route, ROUTE_WITHDRAWN_REASON)
        await self.graph_cache.invalidate(self.redis)

        logger.info("Withdrew route %s, cancelled %d planned journey(s)", route_id, len(cancelled_ids))
        await record_activity(
            self.db,
            ActivityAction.ROUTE_WITHDRAWN,
            entity_type="transit_route",
            entity_id=route_id,
            metadata={"cancelled_journey_ids": cancelled_ids},
        )
        return route, len(cancelled_ids)

    # ------------------------------------------------------------------
    # Fare signs
    # ------------------------------------------------------------------

    async def submit_fare_sign(self, report: SignReport) -> HikingSign:
        graph = await self.graph_cache.get(self.store, self.redis)
        return await self.ledger.submit_sign(report, graph)

    async def verify_fare_sign(self, sign_id: int, verifier_id: int) -> HikingSign:
        return await self.ledger.verify(sign_id, verifier_id)

    async def match_fare_sign(self, sign_id: int) -> HikingSign:
        graph = await self.graph_cache.get(self.store, self.redis)
        return await self.ledger.match_sign(sign_id, graph)

    async def get_fare_sign(self, sign_id: int) -> HikingSign:
        return await self.ledger.get_sign(sign_id)

    async def find_nearby_signs(self, point: GeoPoint, radius_meters: float) -> List[Tuple[HikingSign, float]]:
        return await self.ledger.find_nearby_signs(point, radius_meters)

    async def list_verified_signs(self, skip: int = 0, limit: int = 100) -> List[HikingSign]:
        return await self.ledger.list_verified_signs(skip, limit)

    async def signs_by_location(self, from_location: Optional[str], to_location: Optional[str]) -> List[HikingSign]:
        return await self.ledger.signs_by_location(from_location, to_location)
