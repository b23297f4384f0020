"""
Unit tests for the journey pathfinder.
"""

import pytest
from types import SimpleNamespace

from beerank.app.core.exceptions import (
    NoRankNearLocationError,
    ResourceNotFoundError,
    SameOriginDestinationError,
    ValidationError,
)
from beerank.app.domain.geo.proximity import GeoPoint
from beerank.app.domain.routing.graph import build_graph
from beerank.app.domain.routing.pathfinder import JourneyPathfinder
from beerank.app.models.enums import JourneyType


def rank(id, lat=0.0, lng=0.0, is_active=True):
    return SimpleNamespace(id=id, latitude=lat, longitude=lng, is_active=is_active)


def route(id, origin, destination, fare, duration=None, distance=None, frequency=30, is_active=True):
    return SimpleNamespace(
        id=id,
        origin_rank_id=origin,
        destination_rank_id=destination,
        fare=fare,
        duration_minutes=duration,
        distance_km=distance,
        frequency_minutes=frequency,
        route_name=f"{origin}-{destination}",
        from_location=str(origin),
        to_location=str(destination),
        is_active=is_active,
    )


def finder(routes, ranks=None, **kwargs):
    ranks = ranks if ranks is not None else [rank(i) for i in range(1, 10)]
    return JourneyPathfinder(build_graph(routes), ranks, **kwargs)


def test_direct_route():
    result = finder([route(1, 1, 2, 10, 20, 5.0)]).plan(1, 2)

    assert result.journey_type == JourneyType.DIRECT
    assert result.hop_count == 1
    assert result.total_fare == 10
    assert result.total_duration_minutes == 20
    assert result.segments[0].waiting_time_minutes == 0
    assert result.rank_path == [1, 2]


def test_two_hop_connected_journey():
    """A->B (10, 20) and B->C (15, 25) give a 2-hop journey of 25 / 45."""
    result = finder([
        route(1, 1, 2, 10, 20, frequency=20),
        route(2, 2, 3, 15, 25, frequency=30),
    ]).plan(1, 3)

    assert result.journey_type == JourneyType.CONNECTED
    assert result.hop_count == 2
    assert result.total_fare == 25
    assert result.total_duration_minutes == 45
    assert result.rank_path == [1, 2, 3]
    assert [s.sequence_order for s in result.segments] == [1, 2]
    assert [s.waiting_time_minutes for s in result.segments] == [0, 15]
    # Chain continuity
    assert result.segments[0].connection_rank_id == result.segments[1].origin_rank_id


def test_direct_preferred_over_cheaper_connection():
    result = finder([
        route(1, 1, 3, 100),
        route(2, 1, 2, 1),
        route(3, 2, 3, 1),
    ]).plan(1, 3)
    assert result.journey_type == JourneyType.DIRECT
    assert result.segments[0].route_id == 1


def test_fewest_hops_then_cheapest_fare():
    result = finder([
        # 3 hops, total fare 3
        route(1, 1, 4, 1), route(2, 4, 5, 1), route(3, 5, 3, 1),
        # 2 hops, total fare 50
        route(4, 1, 2, 25), route(5, 2, 3, 25),
        # 2 hops, total fare 40
        route(6, 1, 6, 20), route(7, 6, 3, 20),
    ]).plan(1, 3)

    assert result.hop_count == 2
    assert result.total_fare == 40
    assert result.rank_path == [1, 6, 3]


def test_fare_tie_broken_by_duration_then_rank_sequence():
    by_duration = finder([
        route(1, 1, 2, 10, 30), route(2, 2, 5, 10, 30),
        route(3, 1, 3, 10, 10), route(4, 3, 5, 10, 10),
    ]).plan(1, 5)
    assert by_duration.rank_path == [1, 3, 5]

    by_sequence = finder([
        route(1, 1, 4, 10, 10), route(2, 4, 5, 10, 10),
        route(3, 1, 3, 10, 10), route(4, 3, 5, 10, 10),
    ]).plan(1, 5)
    assert by_sequence.rank_path == [1, 3, 5]


def test_decimal_fares_that_add_up_equal_tie_on_duration():
    """0.1 + 0.2 and 0.3 + 0.0 are the same fare; the faster path wins."""
    result = finder([
        route(1, 1, 2, 0.1, 10), route(2, 2, 4, 0.2, 10),
        route(3, 1, 3, 0.3, 100), route(4, 3, 4, 0.0, 100),
    ]).plan(1, 4)

    assert result.rank_path == [1, 2, 4]
    assert result.total_fare == 0.3
    assert result.total_duration_minutes == 20


def test_cheapest_prefix_kept_at_intermediate_rank():
    """Two ways to reach rank 3 at depth 2; the cheaper one must carry through."""
    result = finder([
        route(1, 1, 2, 5), route(2, 2, 3, 5),      # reaches 3 for 10
        route(3, 1, 4, 1), route(4, 4, 3, 1),      # reaches 3 for 2
        route(5, 3, 6, 7),
    ]).plan(1, 6)
    assert result.rank_path == [1, 4, 3, 6]
    assert result.total_fare == 9


def test_direction_matters():
    f = finder([route(1, 1, 2, 10)])
    assert f.plan(1, 2).found
    assert f.plan(2, 1).journey_type == JourneyType.NO_ROUTE_FOUND


def test_no_route_within_bound():
    routes = [route(1, 1, 2, 1), route(2, 2, 3, 1), route(3, 3, 4, 1)]

    result = finder(routes).plan(1, 4, max_hops=2)

    assert result.journey_type == JourneyType.NO_ROUTE_FOUND
    assert result.hop_count == 0
    assert result.segments == []
    assert result.total_fare == 0
    assert result.rank_path == []
    assert result.reason == "no route found within 2 hops"
    assert finder(routes).plan(1, 4, max_hops=3).hop_count == 3


def test_max_hops_zero_is_no_route():
    result = finder([route(1, 1, 2, 10)]).plan(1, 2, max_hops=0)
    assert result.journey_type == JourneyType.NO_ROUTE_FOUND
    assert result.reason == "no route found within 0 hops"


@pytest.mark.parametrize("max_hops", [-1, 7, "3", True])
def test_bad_max_hops_rejected(max_hops):
    with pytest.raises(ValidationError):
        finder([route(1, 1, 2, 10)], max_hops_limit=6).plan(1, 2, max_hops=max_hops)


def test_same_origin_and_destination_rejected():
    with pytest.raises(SameOriginDestinationError):
        finder([]).plan(1, 1)


def test_unknown_or_inactive_rank_rejected():
    ranks = [rank(1), rank(2, is_active=False)]
    with pytest.raises(ResourceNotFoundError):
        finder([route(1, 1, 2, 10)], ranks=ranks).plan(1, 2)
    with pytest.raises(ResourceNotFoundError):
        finder([], ranks=ranks).plan(1, 99)


def test_inactive_intermediate_rank_not_traversed():
    ranks = [rank(1), rank(2, is_active=False), rank(3), rank(4)]
    result = finder([
        route(1, 1, 2, 1), route(2, 2, 3, 1),
        route(3, 1, 4, 10), route(4, 4, 3, 10),
    ], ranks=ranks).plan(1, 3)
    assert result.rank_path == [1, 4, 3]


def test_totals_rounded_and_missing_values_count_as_zero():
    result = finder([
        route(1, 1, 2, 10.105, None, 1.111),
        route(2, 2, 3, 0.2, 5, None),
    ]).plan(1, 3)
    assert result.total_fare == round(10.105 + 0.2, 2)
    assert result.total_duration_minutes == 5
    assert result.total_distance_km == 1.11


def test_label_cap_stops_search():
    routes = [route(i, 1, i, 1) for i in range(2, 9)] + [route(20, 8, 9, 1)]
    result = finder(routes, max_explored_labels=3).plan(1, 9)
    assert result.journey_type == JourneyType.NO_ROUTE_FOUND
    assert "search limit" in result.reason


def test_coordinates_snap_to_nearest_rank():
    ranks = [rank(1, -33.9249, 18.4241), rank(2, -34.0186, 18.4745)]
    f = finder([route(1, 1, 2, 10)], ranks=ranks, snap_radius_km=2.0)

    result = f.plan_between_points(GeoPoint(-33.9260, 18.4250), GeoPoint(-34.0190, 18.4740))
    assert result.origin_rank_id == 1
    assert result.destination_rank_id == 2

    mixed = f.plan_between_points(1, (-34.0190, 18.4740))
    assert mixed.found


def test_coordinate_far_from_any_rank():
    f = finder([], ranks=[rank(1, -33.9249, 18.4241)], snap_radius_km=2.0)
    with pytest.raises(NoRankNearLocationError):
        f.resolve_point(GeoPoint(-29.8587, 31.0218))
