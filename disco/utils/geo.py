"""Geospatial utilities used for distance calculations."""

from __future__ import annotations

from math import atan2, cos, radians, sin, sqrt

EARTH_RADIUS_KM = 6371.0

Coordinates = tuple[float, float]


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Calculate great-circle distance between two lat/lng points in km.

    Args:
        lat1: Latitude of the first point.
        lng1: Longitude of the first point.
        lat2: Latitude of the second point.
        lng2: Longitude of the second point.

    Returns:
        Distance in kilometers.
    """

    lat1_rad = radians(lat1)
    lat2_rad = radians(lat2)

    delta_lat = lat2_rad - lat1_rad
    delta_lng = radians(lng2) - radians(lng1)

    a = sin(delta_lat / 2) ** 2 + cos(lat1_rad) * cos(lat2_rad) * sin(
        delta_lng / 2
    ) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def get_coordinates(user: dict) -> Coordinates | None:
    """Return (lat, lng) from a user document, or None when unresolvable.

    Both ``locationLat`` and ``locationLng`` must be present and numeric.
    Booleans are rejected even though they are ints.
    """

    lat = user.get("locationLat")
    lng = user.get("locationLng")
    for value in (lat, lng):
        if value is None or isinstance(value, bool):
            return None
        if not isinstance(value, (int, float)):
            return None
    return float(lat), float(lng)


def distance_between_km(user: dict, other: dict) -> float | None:
    """Distance between two user documents, None if either lacks a location."""

    origin = get_coordinates(user)
    target = get_coordinates(other)
    if origin is None or target is None:
        return None
    return haversine_km(origin[0], origin[1], target[0], target[1])
