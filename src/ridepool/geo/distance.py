"""Centralized geographic distance calculations.

This module provides Haversine distance calculations for determining
proximity between geographic coordinates. Used for ride distance estimates
at booking time and for destination proximity when pooling rides.

Points are ``(latitude, longitude)`` tuples in degrees. Note that stored
GeoJSON coordinates are ``[longitude, latitude]``; convert at the edge.
"""

from math import asin, atan2, cos, degrees, radians, sin, sqrt
from typing import NamedTuple

EARTH_RADIUS_KM = 6371.0  # Earth radius in kilometers

# 1 / 111.32 km per degree of latitude
_LAT_DEGREES_PER_KM: float = 1.0 / 111.32


def haversine_distance_km(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
) -> float:
    """Calculate the great-circle distance between two points in kilometers.

    Uses the Haversine formula to calculate the shortest distance over
    the Earth's surface between two points specified by latitude/longitude.

    Args:
        lat1: Latitude of first point in degrees
        lon1: Longitude of first point in degrees
        lat2: Latitude of second point in degrees
        lon2: Longitude of second point in degrees

    Returns:
        Distance between the two points in kilometers
    """
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])
    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def distance(a: tuple[float, float], b: tuple[float, float]) -> float:
    """Distance in kilometers between two ``(lat, lon)`` points."""
    return haversine_distance_km(a[0], a[1], b[0], b[1])


class BoundingBox(NamedTuple):
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float


def bounding_box(lat: float, lon: float, radius_km: float) -> BoundingBox:
    """Latitude/longitude box that contains every point within ``radius_km``.

    Used as an index-friendly SQL prefilter before the exact Haversine check.
    The box is widened by 1% so boundary points are never dropped. Longitude
    spread grows with latitude; near the poles the box covers every longitude.
    """
    lat_delta = radius_km * _LAT_DEGREES_PER_KM * 1.01
    angular = radius_km / EARTH_RADIUS_KM
    cos_lat = cos(radians(lat))

    if abs(lat) + lat_delta >= 90.0 or sin(angular) >= cos_lat:
        lon_delta = 180.0
    else:
        lon_delta = degrees(asin(min(1.0, sin(angular) / cos_lat))) * 1.01

    return BoundingBox(
        min_lat=max(lat - lat_delta, -90.0),
        max_lat=min(lat + lat_delta, 90.0),
        min_lon=max(lon - lon_delta, -180.0),
        max_lon=min(lon + lon_delta, 180.0),
    )
