"""
Journey pathfinder.

Plans a journey between two taxi ranks over a RankGraph snapshot:

1. A direct route between the ranks wins outright.
2. Otherwise a layered breadth-first search bounded by ``max_hops`` finds
   the minimum number of hops; among paths of that length the cheapest
   fare, then shortest duration, then smallest rank-id sequence is chosen.
3. Nothing within the bound yields a ``no_route_found`` result, which is a
   normal value rather than an error.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from beerank.app.core.exceptions import (
    NoRankNearLocationError,
    ResourceNotFoundError,
    SameOriginDestinationError,
    ValidationError,
)
from beerank.app.domain.geo.proximity import GeoPoint, nearest
from beerank.app.domain.routing.graph import RankGraph, RouteEdge
from beerank.app.models.enums import JourneyType

logger = logging.getLogger("beerank.routing")

Endpoint = Union[int, GeoPoint, Tuple[float, float]]


@dataclass(frozen=True)
class PlanSegment:
    """One hop of a planned journey."""
    sequence_order: int
    route_id: int
    origin_rank_id: int
    connection_rank_id: int
    fare: float
    duration_minutes: Optional[int]
    distance_km: Optional[float]
    waiting_time_minutes: int = 0
    route_name: str = ""


@dataclass
class PlanResult:
    """Outcome of a planning request (possibly ``no_route_found``)."""
    journey_type: JourneyType
    origin_rank_id: int
    destination_rank_id: int
    max_hops: int
    segments: List[PlanSegment] = field(default_factory=list)
    total_fare: float = 0.0
    total_duration_minutes: int = 0
    total_distance_km: float = 0.0
    reason: Optional[str] = None
    graph_version: int = 0

    @property
    def hop_count(self) -> int:
        return len(self.segments)

    @property
    def found(self) -> bool:
        return self.journey_type != JourneyType.NO_ROUTE_FOUND

    @property
    def rank_path(self) -> List[int]:
        """Ranks visited from origin to destination; empty when no route was found."""
        if not self.segments:
            return []
        return [self.origin_rank_id] + [s.connection_rank_id for s in self.segments]


# (total fare in cents, total duration, rank sequence, edges taken)
_Label = Tuple[int, int, Tuple[int, ...], Tuple[RouteEdge, ...]]


def to_cents(amount: float) -> int:
    """Fares compare in whole cents so equal amounts tie exactly."""
    return int(round(amount * 100))


def build_plan(
    origin_rank_id: int,
    destination_rank_id: int,
    edges: Sequence[RouteEdge],
    max_hops: int,
    graph_version: int = 0
) -> PlanResult:
    """
    Aggregate a chain of edges into a PlanResult.

    Fare and distance totals are rounded to 2 decimals; waiting time is 0
    on the first hop and half the route frequency on later hops. Waiting
    time is not added to the total duration.
    """
    segments = []
    for index, edge in enumerate(edges, start=1):
        waiting = 0 if index == 1 else (edge.frequency_minutes or 0) // 2
        segments.append(PlanSegment(
            sequence_order=index,
            route_id=edge.route_id,
            origin_rank_id=edge.origin_rank_id,
            connection_rank_id=edge.destination_rank_id,
            fare=edge.fare,
            duration_minutes=edge.duration_minutes,
            distance_km=edge.distance_km,
            waiting_time_minutes=waiting,
            route_name=edge.route_name,
        ))

    return PlanResult(
        journey_type=JourneyType.DIRECT if len(segments) == 1 else JourneyType.CONNECTED,
        origin_rank_id=origin_rank_id,
        destination_rank_id=destination_rank_id,
        max_hops=max_hops,
        segments=segments,
        total_fare=round(sum(s.fare for s in segments), 2),
        total_duration_minutes=sum(s.duration_minutes or 0 for s in segments),
        total_distance_km=round(sum(s.distance_km or 0 for s in segments), 2),
        graph_version=graph_version,
    )


def no_route(origin_rank_id: int, destination_rank_id: int, max_hops: int, reason: str, graph_version: int = 0) -> PlanResult:
    return PlanResult(
        journey_type=JourneyType.NO_ROUTE_FOUND,
        origin_rank_id=origin_rank_id,
        destination_rank_id=destination_rank_id,
        max_hops=max_hops,
        reason=reason,
        graph_version=graph_version,
    )


class JourneyPathfinder:
    """
    Plans journeys over one graph snapshot and one set of active ranks.

    Instances are cheap and hold no mutable state beyond construction, so a
    new one is built per request.
    """

    def __init__(
        self,
        graph: RankGraph,
        ranks: Iterable[Any],
        snap_radius_km: float = 2.0,
        max_hops_limit: int = 6,
        max_explored_labels: int = 50000
    ):
        self.graph = graph
        self.ranks: Dict[int, Any] = {
            rank.id: rank for rank in ranks if getattr(rank, "is_active", True)
        }
        self.snap_radius_km = snap_radius_km
        self.max_hops_limit = max_hops_limit
        self.max_explored_labels = max_explored_labels

    def _check_max_hops(self, max_hops: Any) -> int:
        if isinstance(max_hops, bool) or not isinstance(max_hops, int):
            raise ValidationError("max_hops must be an integer", details={"max_hops": max_hops})
        if max_hops < 0 or max_hops > self.max_hops_limit:
            raise ValidationError(
                f"max_hops must be between 0 and {self.max_hops_limit}",
                details={"max_hops": max_hops, "max_hops_limit": self.max_hops_limit}
            )
        return max_hops

    def _check_rank(self, rank_id: int) -> None:
        if rank_id not in self.ranks:
            raise ResourceNotFoundError("TaxiRank", rank_id)

    def resolve_point(self, point: Union[GeoPoint, Tuple[float, float]]) -> int:
        """
        Snap a coordinate to the nearest active rank.

        Raises:
            InvalidCoordinateError: If the coordinate is out of range
            NoRankNearLocationError: If no active rank lies within the snap radius
        """
        match = nearest(GeoPoint(point[0], point[1]), self.snap_radius_km * 1000.0, self.ranks.values())
        if match is None:
            raise NoRankNearLocationError(point[0], point[1], self.snap_radius_km)
        rank, distance_km = match
        logger.debug("Snapped (%s, %s) to rank %s at %.3f km", point[0], point[1], rank.id, distance_km)
        return rank.id

    def resolve_endpoint(self, endpoint: Endpoint) -> int:
        """Accept either a rank id or a coordinate pair."""
        if isinstance(endpoint, bool):
            raise ValidationError("Endpoint must be a rank id or a coordinate", details={"endpoint": endpoint})
        if isinstance(endpoint, int):
            return endpoint
        return self.resolve_point(endpoint)

    def plan(self, origin_rank_id: int, destination_rank_id: int, max_hops: int = 3) -> PlanResult:
        """
        Plan a journey between two ranks.

        Args:
            origin_rank_id: Starting rank
            destination_rank_id: Target rank
            max_hops: Maximum number of routes to chain (0 permits none)

        Returns:
            PlanResult; ``journey_type`` is no_route_found when nothing fits the bound

        Raises:
            ValidationError: If max_hops is negative or above the configured limit
            ResourceNotFoundError: If either rank is unknown or inactive
            SameOriginDestinationError: If origin and destination are the same rank
        """
        max_hops = self._check_max_hops(max_hops)
        self._check_rank(origin_rank_id)
        self._check_rank(destination_rank_id)
        if origin_rank_id == destination_rank_id:
            raise SameOriginDestinationError(origin_rank_id)

        version = self.graph.version
        not_found_reason = f"no route found within {max_hops} hops"

        if max_hops == 0:
            return no_route(origin_rank_id, destination_rank_id, 0, not_found_reason, version)

        # 1. Direct edge
        direct = self.graph.edge(origin_rank_id, destination_rank_id)
        if direct is not None:
            result = build_plan(origin_rank_id, destination_rank_id, [direct], max_hops, version)
            logger.info(
                "Planned direct journey %s -> %s via route %s (fare %.2f)",
                origin_rank_id, destination_rank_id, direct.route_id, result.total_fare
            )
            return result

        # 2. Layered search
        edges, exhausted = self._search(origin_rank_id, destination_rank_id, max_hops)
        if edges is None:
            reason = not_found_reason
            if exhausted:
                reason = f"{not_found_reason} (search limit of {self.max_explored_labels} labels reached)"
            logger.info("No route %s -> %s: %s", origin_rank_id, destination_rank_id, reason)
            return no_route(origin_rank_id, destination_rank_id, max_hops, reason, version)

        result = build_plan(origin_rank_id, destination_rank_id, edges, max_hops, version)
        logger.info(
            "Planned %d-hop journey %s -> %s via ranks %s (fare %.2f)",
            result.hop_count, origin_rank_id, destination_rank_id, result.rank_path, result.total_fare
        )
        return result

    def plan_between_points(self, origin: Endpoint, destination: Endpoint, max_hops: int = 3) -> PlanResult:
        """Plan between rank ids and/or coordinates, snapping coordinates first."""
        self._check_max_hops(max_hops)
        origin_id = self.resolve_endpoint(origin)
        destination_id = self.resolve_endpoint(destination)
        return self.plan(origin_id, destination_id, max_hops)

    def _search(self, origin_id: int, destination_id: int, max_hops: int) -> Tuple[Optional[Tuple[RouteEdge, ...]], bool]:
        """
        Breadth-first search keeping one best label per rank.

        A rank's label is fixed at the layer where it is first reached. Every
        minimum-hop path visits each of its ranks at that rank's BFS depth,
        and the (fare, duration, sequence) order is preserved when the same
        suffix is appended, so the per-rank label is exact.

        Returns:
            (edges of the best path or None, whether the label cap was hit)
        """
        labels: Dict[int, _Label] = {origin_id: (0, 0, (origin_id,), ())}
        frontier = [origin_id]
        explored = 0

        for _depth in range(1, max_hops + 1):
            layer: Dict[int, _Label] = {}

            for node in frontier:
                fare, duration, path, taken = labels[node]
                for edge in self.graph.edges_from(node):
                    nxt = edge.destination_rank_id
                    if nxt in labels or nxt not in self.ranks:
                        continue

                    explored += 1
                    if explored > self.max_explored_labels:
                        logger.warning(
                            "Search %s -> %s stopped after %d labels",
                            origin_id, destination_id, self.max_explored_labels
                        )
                        return None, True

                    candidate = (
                        fare + to_cents(edge.fare),
                        duration + (edge.duration_minutes or 0),
                        path + (nxt,),
                        taken + (edge,),
                    )
                    current = layer.get(nxt)
                    if current is None or candidate[:3] < current[:3]:
                        layer[nxt] = candidate

            if not layer:
                break

            labels.update(layer)
            if destination_id in layer:
                return labels[destination_id][3], False

            frontier = sorted(layer)

        return None, False
