"""City boundary and landmark proximity helpers."""

from collections.abc import Iterable, Sequence
from typing import Protocol, TypeVar

from shapely.geometry import Point, Polygon

from .distance import distance


class Locatable(Protocol):
    latitude: float
    longitude: float


L = TypeVar("L", bound=Locatable)


def is_point_in_boundary(
    point: tuple[float, float],
    boundary: Sequence[Sequence[float]],
) -> bool:
    """Point-in-polygon test for a city boundary.

    Args:
        point: ``(lat, lon)`` to test
        boundary: polygon ring as GeoJSON ``[lon, lat]`` pairs; closing the ring
            (repeating the first vertex) is optional

    Returns:
        True if the point lies strictly inside the polygon.
    """
    if len(boundary) < 3:
        return False

    lat, lon = point
    # Shapely Point is (lon, lat)
    return Polygon([(v[0], v[1]) for v in boundary]).contains(Point(lon, lat))


def find_nearest_landmarks(
    point: tuple[float, float],
    landmarks: Iterable[L],
    max_distance_km: float = 5.0,
) -> list[tuple[L, float]]:
    """Landmarks within ``max_distance_km`` of ``point``, nearest first."""
    nearby = []
    for landmark in landmarks:
        km = distance(point, (landmark.latitude, landmark.longitude))
        if km <= max_distance_km:
            nearby.append((landmark, km))
    nearby.sort(key=lambda pair: pair[1])
    return nearby
