"""
Geospatial proximity search.

Pure functions over caller-supplied candidates (taxi ranks, fare signs).
Any object exposing ``id``, ``latitude`` and ``longitude`` is a valid
candidate; an optional ``is_active`` flag hides inactive ones.
"""

import math
from typing import Any, Iterable, List, NamedTuple, Optional, Tuple

from beerank.app.core.exceptions import InvalidCoordinateError, ValidationError

EARTH_RADIUS_KM = 6371.0

# Absorbs float error at the box edge
BOX_PADDING_DEGREES = 1e-9


class GeoPoint(NamedTuple):
    latitude: float
    longitude: float


def validate_coordinate(latitude: Any, longitude: Any) -> GeoPoint:
    """
    Validate a WGS84 coordinate pair.

    Returns:
        The coordinate as a GeoPoint of floats

    Raises:
        InvalidCoordinateError: If either value is missing, not a number or out of range
    """
    try:
        lat = float(latitude)
        lon = float(longitude)
    except (TypeError, ValueError):
        raise InvalidCoordinateError(latitude, longitude)

    if math.isnan(lat) or math.isnan(lon):
        raise InvalidCoordinateError(latitude, longitude)
    if not -90.0 <= lat <= 90.0 or not -180.0 <= lon <= 180.0:
        raise InvalidCoordinateError(latitude, longitude)

    return GeoPoint(lat, lon)


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Args:
        lat1, lon1: First point coordinates (degrees)
        lat2, lon2: Second point coordinates (degrees)

    Returns:
        Distance in kilometers
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = lat2_rad - lat1_rad
    dlon = math.radians(lon2 - lon1)

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def _is_active(candidate: Any) -> bool:
    return bool(getattr(candidate, "is_active", True))


def nearby(point: GeoPoint, radius_meters: float, candidates: Iterable[Any]) -> List[Tuple[Any, float]]:
    """
    Find active candidates within a radius of a point.

    Args:
        point: Search centre
        radius_meters: Inclusive search radius in meters
        candidates: Entities with id/latitude/longitude

    Returns:
        List of (entity, distance_km), nearest first, ties broken by id

    Raises:
        InvalidCoordinateError: If the search point is invalid
        ValidationError: If the radius is negative
    """
    center = validate_coordinate(point[0], point[1])
    if radius_meters is None or radius_meters < 0:
        raise ValidationError(
            "Search radius must be a non-negative number of meters",
            details={"radius_meters": radius_meters}
        )

    radius_km = radius_meters / 1000.0
    results = []

    for candidate in candidates:
        if not _is_active(candidate):
            continue
        distance = haversine_distance(
            center.latitude, center.longitude, candidate.latitude, candidate.longitude
        )
        if distance <= radius_km:
            results.append((candidate, distance))

    results.sort(key=lambda item: (item[1], item[0].id))
    return results


def nearest(point: GeoPoint, radius_meters: float, candidates: Iterable[Any]) -> Optional[Tuple[Any, float]]:
    """Closest active candidate within the radius, or None."""
    results = nearby(point, radius_meters, candidates)
    return results[0] if results else None


def bounding_box(point: GeoPoint, radius_km: float) -> Tuple[float, float, Optional[float], Optional[float]]:
    """
    Compute a lat/lon box that contains every point within ``radius_km``.

    Used to pre-filter rows in SQL before the exact haversine check.

    Returns:
        (min_lat, max_lat, min_lon, max_lon). The longitude bounds are None
        when the circle reaches a pole or crosses the antimeridian, in which
        case only latitude should be filtered.
    """
    center = validate_coordinate(point[0], point[1])
    angular = radius_km / EARTH_RADIUS_KM
    lat_delta = math.degrees(angular) + BOX_PADDING_DEGREES

    min_lat = max(-90.0, center.latitude - lat_delta)
    max_lat = min(90.0, center.latitude + lat_delta)

    if min_lat <= -90.0 or max_lat >= 90.0:
        return min_lat, max_lat, None, None

    # Longitude extent of a spherical cap
    ratio = math.sin(angular) / math.cos(math.radians(center.latitude))
    if ratio >= 1.0:
        return min_lat, max_lat, None, None

    lon_delta = math.degrees(math.asin(ratio)) + BOX_PADDING_DEGREES
    min_lon = center.longitude - lon_delta
    max_lon = center.longitude + lon_delta

    if min_lon < -180.0 or max_lon > 180.0:
        return min_lat, max_lat, None, None

    return min_lat, max_lat, min_lon, max_lon
