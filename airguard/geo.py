"""
Geodesic helpers shared by the tracking and airspace modules.
"""

import math
from typing import Sequence, Tuple

EARTH_RADIUS_M = 6371000.0


def haversine_distance(
    lat1: float, lon1: float,
    lat2: float, lon2: float
) -> float:
    """
    Calculate great-circle distance between two points in meters.

    Uses the Haversine formula for accuracy over short to medium distances.
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2 +
        math.cos(lat1_rad) * math.cos(lat2_rad) *
        math.sin(delta_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def point_in_polygon(
    longitude: float,
    latitude: float,
    ring: Sequence[Tuple[float, float]],
) -> bool:
    """
    Ray-casting containment test over a ring of (lon, lat) vertices.

    A horizontal ray is cast from the point; every edge it crosses
    toggles the result. Points exactly on an edge resolve the same way
    on every call, which keeps entry/exit detection stable across cycles.
    A closing vertex equal to the first one is harmless.
    """
    n = len(ring)
    if n < 3:
        return False

    inside = False
    j = n - 1
    for i in range(n):
        lon_i, lat_i = ring[i]
        lon_j, lat_j = ring[j]

        if (lon_i > longitude) != (lon_j > longitude):
            crossing_lat = (lat_j - lat_i) * (longitude - lon_i) / (lon_j - lon_i) + lat_i
            if latitude < crossing_lat:
                inside = not inside
        j = i

    return inside
