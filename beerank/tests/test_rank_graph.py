"""
Unit tests for the rank graph model.
"""

import pytest
from types import SimpleNamespace

from beerank.app.core.exceptions import ValidationError
from beerank.app.domain.routing.graph import build_graph


def route(id, origin, destination, fare, duration=None, is_active=True, **extra):
    values = dict(
        id=id,
        origin_rank_id=origin,
        destination_rank_id=destination,
        fare=fare,
        duration_minutes=duration,
        distance_km=None,
        frequency_minutes=30,
        route_name=f"{origin}-{destination}",
        from_location=str(origin),
        to_location=str(destination),
        is_active=is_active,
    )
    values.update(extra)
    return SimpleNamespace(**values)


def test_edges_are_directed():
    graph = build_graph([route(1, 1, 2, 10)])
    assert graph.edge(1, 2).route_id == 1
    assert graph.edge(2, 1) is None
    assert graph.edges_from(2) == ()


def test_inactive_routes_skipped():
    graph = build_graph([route(1, 1, 2, 10, is_active=False), route(2, 1, 3, 5)])
    assert graph.edge(1, 2) is None
    assert len(graph) == 1


def test_parallel_edges_prefer_fare_then_duration_then_id():
    graph = build_graph([
        route(5, 1, 2, 12, 10),
        route(4, 1, 2, 10, 30),
        route(3, 1, 2, 10, 20),
        route(2, 1, 2, 10, 20),
    ])
    assert graph.edge(1, 2).route_id == 2
    assert len([e for e in graph.edges_from(1) if e.destination_rank_id == 2]) == 4


def test_missing_duration_counts_as_zero():
    graph = build_graph([route(1, 1, 2, 10, 5), route(2, 1, 2, 10, None)])
    assert graph.edge(1, 2).route_id == 2


def test_edges_from_ordering():
    graph = build_graph([route(1, 1, 3, 5), route(2, 1, 2, 9), route(3, 1, 2, 7)])
    assert [e.route_id for e in graph.edges_from(1)] == [3, 2, 1]


@pytest.mark.parametrize("bad", [
    route(1, 1, 1, 10),
    route(2, 1, 2, -1),
    route(3, 1, 2, 10, -5),
])
def test_invalid_routes_rejected(bad):
    with pytest.raises(ValidationError):
        build_graph([bad])


def test_version_recorded():
    assert build_graph([], version=7).version == 7
