"""
Rank graph model.

Immutable in-memory directed multigraph: nodes are taxi rank ids, edges are
active transit routes. Built once per snapshot and shared read-only by
concurrent planners.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from beerank.app.core.exceptions import ValidationError


@dataclass(frozen=True)
class RouteEdge:
    """A directed route between two ranks, detached from the ORM session."""
    route_id: int
    origin_rank_id: int
    destination_rank_id: int
    fare: float
    duration_minutes: Optional[int] = None
    distance_km: Optional[float] = None
    frequency_minutes: int = 30
    route_name: str = ""
    from_location: str = ""
    to_location: str = ""

    @property
    def preference_key(self) -> Tuple[float, int, int]:
        """Lowest fare, then shortest duration (missing counts as 0), then lowest id."""
        return (self.fare, self.duration_minutes or 0, self.route_id)

    @classmethod
    def from_route(cls, route: Any) -> "RouteEdge":
        return cls(
            route_id=route.id,
            origin_rank_id=route.origin_rank_id,
            destination_rank_id=route.destination_rank_id,
            fare=float(route.fare),
            duration_minutes=route.duration_minutes,
            distance_km=route.distance_km,
            frequency_minutes=route.frequency_minutes if route.frequency_minutes is not None else 30,
            route_name=route.route_name or "",
            from_location=route.from_location or "",
            to_location=route.to_location or "",
        )


def _validate_route(route: Any) -> None:
    details = {"route_id": getattr(route, "id", None)}
    if route.origin_rank_id == route.destination_rank_id:
        raise ValidationError("Route origin and destination must be different ranks", details=details)
    if route.fare is None or route.fare < 0:
        raise ValidationError("Route fare must be non-negative", details=details)
    if route.duration_minutes is not None and route.duration_minutes < 0:
        raise ValidationError("Route duration must be non-negative", details=details)
    if route.distance_km is not None and route.distance_km < 0:
        raise ValidationError("Route distance must be non-negative", details=details)


class RankGraph:
    """
    Read-only adjacency view over route edges.

    Several edges may join the same ordered pair of ranks; ``edge`` picks the
    preferred one and ``edges_from`` lists all of them.
    """

    def __init__(self, edges: Iterable[RouteEdge], version: int = 0):
        self.version = version

        adjacency: Dict[int, List[RouteEdge]] = defaultdict(list)
        for edge in edges:
            adjacency[edge.origin_rank_id].append(edge)

        self._adjacency: Dict[int, Tuple[RouteEdge, ...]] = {}
        self._best: Dict[Tuple[int, int], RouteEdge] = {}
        for origin_id, outgoing in adjacency.items():
            outgoing.sort(key=lambda e: (e.destination_rank_id,) + e.preference_key)
            self._adjacency[origin_id] = tuple(outgoing)
            for edge in outgoing:
                # Sorted order means the first edge seen per pair is preferred
                self._best.setdefault((origin_id, edge.destination_rank_id), edge)

        self.edge_count = sum(len(v) for v in self._adjacency.values())

    def edges_from(self, rank_id: int) -> Tuple[RouteEdge, ...]:
        """Outgoing edges ordered by destination, fare, duration, route id."""
        return self._adjacency.get(rank_id, ())

    def edge(self, origin_id: int, destination_id: int) -> Optional[RouteEdge]:
        """Preferred edge between an ordered pair of ranks, or None."""
        return self._best.get((origin_id, destination_id))

    def __len__(self) -> int:
        return self.edge_count

    def __repr__(self):
        return f"<RankGraph(version={self.version}, nodes={len(self._adjacency)}, edges={self.edge_count})>"


def build_graph(routes: Iterable[Any], version: int = 0) -> RankGraph:
    """
    Build a graph snapshot from route rows.

    Args:
        routes: TransitRoute rows (or objects with the same attributes)
        version: Snapshot version recorded on the graph

    Returns:
        RankGraph containing every active route

    Raises:
        ValidationError: If a route loops back to its origin or has a negative fare
    """
    edges = []
    for route in routes:
        if not getattr(route, "is_active", True):
            continue
        _validate_route(route)
        edges.append(RouteEdge.from_route(route))
    return RankGraph(edges, version=version)
