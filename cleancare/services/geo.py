"""Distance helpers for rider and booking proximity searches."""

import math

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def within_radius(lat1, lng1, lat2, lng2, radius_km: float) -> bool:
    if None in (lat1, lng1, lat2, lng2):
        return False
    return haversine_km(lat1, lng1, lat2, lng2) <= radius_km
