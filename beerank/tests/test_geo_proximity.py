"""
Unit tests for the geospatial proximity index.
"""

import pytest
from types import SimpleNamespace

from beerank.app.core.exceptions import InvalidCoordinateError, ValidationError
from beerank.app.domain.geo.proximity import (
    GeoPoint,
    bounding_box,
    haversine_distance,
    nearby,
    nearest,
    validate_coordinate,
)


def place(id, lat, lng, **extra):
    return SimpleNamespace(id=id, latitude=lat, longitude=lng, **extra)


CBD = GeoPoint(-33.9249, 18.4241)


def test_haversine_known_distance():
    """Cape Town CBD to Wynberg is roughly 11 km."""
    distance = haversine_distance(-33.9249, 18.4241, -34.0186, 18.4745)
    assert 11.0 < distance < 12.0


def test_haversine_zero_and_symmetric():
    assert haversine_distance(10, 20, 10, 20) == 0
    a = haversine_distance(-33.9, 18.4, -26.2, 28.0)
    b = haversine_distance(-26.2, 28.0, -33.9, 18.4)
    assert a == pytest.approx(b)


@pytest.mark.parametrize("lat,lng", [(91, 0), (-90.5, 0), (0, 180.1), (0, -181), (None, 0), ("abc", 1)])
def test_invalid_coordinates_rejected(lat, lng):
    with pytest.raises(InvalidCoordinateError):
        validate_coordinate(lat, lng)


def test_boundary_coordinates_accepted():
    assert validate_coordinate(90, 180) == GeoPoint(90.0, 180.0)
    assert validate_coordinate(-90, -180) == GeoPoint(-90.0, -180.0)


def test_nearby_sorted_by_distance_and_within_radius():
    candidates = [
        place(1, -34.0186, 18.4745),   # ~11 km
        place(2, -33.9250, 18.4242),   # a few meters
        place(3, -29.8587, 31.0218),   # Durban
        place(4, -33.9300, 18.4300),   # < 1 km
    ]

    results = nearby(CBD, 15000, candidates)

    assert [entity.id for entity, _ in results] == [2, 4, 1]
    distances = [d for _, d in results]
    assert distances == sorted(distances)
    assert all(d <= 15.0 for d in distances)


def test_nearby_radius_is_inclusive():
    same_spot = place(1, CBD.latitude, CBD.longitude)
    assert nearby(CBD, 0, [same_spot])[0][1] == 0

    target = place(2, -34.0186, 18.4745)
    exact_m = haversine_distance(CBD.latitude, CBD.longitude, target.latitude, target.longitude) * 1000
    assert nearby(CBD, exact_m + 0.001, [target])
    assert nearby(CBD, exact_m - 1, [target]) == []


def test_nearby_ties_broken_by_id():
    candidates = [place(9, -33.93, 18.43), place(3, -33.93, 18.43), place(5, -33.93, 18.43)]
    assert [e.id for e, _ in nearby(CBD, 5000, candidates)] == [3, 5, 9]


def test_nearby_skips_inactive_and_treats_missing_flag_as_active():
    candidates = [
        place(1, -33.9250, 18.4242, is_active=False),
        place(2, -33.9251, 18.4243, is_active=True),
        place(3, -33.9252, 18.4244),
    ]
    assert [e.id for e, _ in nearby(CBD, 1000, candidates)] == [2, 3]


def test_nearby_rejects_bad_input():
    with pytest.raises(ValidationError):
        nearby(CBD, -1, [])
    with pytest.raises(InvalidCoordinateError):
        nearby(GeoPoint(100, 0), 1000, [])


def test_nearest_returns_none_when_empty():
    assert nearest(CBD, 10, [place(1, -29.8587, 31.0218)]) is None
    entity, distance = nearest(CBD, 20000, [place(1, -34.0186, 18.4745), place(2, -33.93, 18.43)])
    assert entity.id == 2


def test_bounding_box_contains_points_on_circle():
    min_lat, max_lat, min_lon, max_lon = bounding_box(CBD, 2.0)

    # Walk due north/south/east/west until just inside 2 km
    for lat, lng in [(-33.9070, 18.4241), (-33.9428, 18.4241), (-33.9249, 18.4457), (-33.9249, 18.4025)]:
        assert haversine_distance(CBD.latitude, CBD.longitude, lat, lng) <= 2.0
        assert min_lat <= lat <= max_lat
        assert min_lon <= lng <= max_lon


def test_bounding_box_drops_longitude_near_pole_and_antimeridian():
    assert bounding_box(GeoPoint(89.99, 0), 5)[2:] == (None, None)
    assert bounding_box(GeoPoint(0, 179.99), 5)[2:] == (None, None)
