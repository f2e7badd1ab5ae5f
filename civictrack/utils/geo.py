"""
Spherical geometry helpers for location filters.
"""

import math
from typing import Tuple

EARTH_RADIUS_METERS = 6371000.0

# Meters spanned by one degree of latitude on the reference sphere
_METERS_PER_DEGREE = math.pi * EARTH_RADIUS_METERS / 180.0


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points, in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def bounding_box(lat: float, lng: float, radius_meters: float) -> Tuple[float, float, float, float]:
    """
    Lat/lng box that fully contains the circle of radius_meters around a point.

    Returns (min_lat, max_lat, min_lng, max_lng). Longitude spans the whole
    range when the circle reaches a pole or crosses the antimeridian; the
    exact haversine check does the final filtering.
    """
    dlat = radius_meters / _METERS_PER_DEGREE
    min_lat = max(-90.0, lat - dlat)
    max_lat = min(90.0, lat + dlat)

    if min_lat <= -90.0 or max_lat >= 90.0:
        return min_lat, max_lat, -180.0, 180.0

    # Degrees of longitude are narrowest at the poleward edge of the band
    dlng = dlat / math.cos(math.radians(max(abs(min_lat), abs(max_lat))))
    min_lng = lng - dlng
    max_lng = lng + dlng
    if min_lng < -180.0 or max_lng > 180.0:
        return min_lat, max_lat, -180.0, 180.0
    return min_lat, max_lat, min_lng, max_lng
