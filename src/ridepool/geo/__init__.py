"""Geographic helpers: great-circle distance, bounding boxes and boundaries."""

from .boundary import find_nearest_landmarks, is_point_in_boundary
from .distance import (
    EARTH_RADIUS_KM,
    BoundingBox,
    bounding_box,
    distance,
    haversine_distance_km,
)

__all__ = [
    "EARTH_RADIUS_KM",
    "BoundingBox",
    "bounding_box",
    "distance",
    "haversine_distance_km",
    "is_point_in_boundary",
    "find_nearest_landmarks",
]
