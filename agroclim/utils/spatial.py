"""
Geospatial helpers.
"""

import math

EARTH_RADIUS_KM = 6371.0


def haversine_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points in kilometres.

    Example:
        >>> round(haversine_distance_km(48.8566, 2.3522, 45.7640, 4.8357))
        391
    """
    p1 = math.radians(lat1)
    p2 = math.radians(lat2)
    dp = math.radians(lat2 - lat1)
    dl = math.radians(lon2 - lon1)
    a = math.sin(dp / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def is_valid_coordinate(lat, lon) -> bool:
    """True when both values are finite numbers."""
    try:
        return math.isfinite(float(lat)) and math.isfinite(float(lon))
    except (TypeError, ValueError):
        return False
