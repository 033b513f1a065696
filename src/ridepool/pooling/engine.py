"""Pooling engine: merges a new ride with compatible pending rides.

Candidates share the pickup landmark, are scheduled within a time window of
the new ride and head to a destination within a radius of its destination.
Matching is opportunistic: the nearest few candidates win, not a global
optimum.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Protocol

from pydantic import BaseModel, Field

from ridepool.geo import BoundingBox, bounding_box, distance
from ridepool.ride import Ride, RideStatus

if TYPE_CHECKING:
    from ridepool.settings import PoolingSettings

logger = logging.getLogger(__name__)


class PoolCriteria(BaseModel):
    """Merge thresholds. A zero ``max_candidates`` disables pooling."""

    radius_km: float = Field(default=3.0, gt=0)
    window_minutes: int = Field(default=30, ge=0)
    max_candidates: int = Field(default=3, ge=0)

    @property
    def window(self) -> timedelta:
        return timedelta(minutes=self.window_minutes)

    @classmethod
    def from_settings(cls, settings: "PoolingSettings") -> "PoolCriteria":
        return cls(
            radius_km=settings.radius_km,
            window_minutes=settings.window_minutes,
            max_candidates=settings.max_candidates,
        )


class CandidateSource(Protocol):
    def list_pool_candidates(
        self,
        pickup_landmark_id: str,
        window_start: datetime,
        window_end: datetime,
        box: BoundingBox,
        exclude_pool_id: str,
    ) -> list[Ride]: ...

    def join_pool(self, ride_id: str, pool_id: str) -> bool: ...


def select_candidates(
    ride: Ride,
    rides: Iterable[Ride],
    criteria: PoolCriteria,
) -> list[tuple[Ride, float]]:
    """Filter rides that can join ``ride``'s pool, nearest destination first.

    Returns at most ``criteria.max_candidates`` ``(ride, destination_km)`` pairs.
    """
    matches = []
    for other in rides:
        if other.ride_id == ride.ride_id or other.status != RideStatus.PENDING:
            continue
        if other.pickup_landmark_id != ride.pickup_landmark_id:
            continue
        if other.pool_id == ride.pool_id:
            continue
        if abs(other.scheduled_time - ride.scheduled_time) > criteria.window:
            continue
        km = distance(ride.destination_point, other.destination_point)
        if km > criteria.radius_km:
            continue
        matches.append((other, km))

    matches.sort(key=lambda pair: pair[1])
    return matches[: criteria.max_candidates]


class PoolingEngine:
    def __init__(self, criteria: PoolCriteria | None = None):
        self.criteria = criteria or PoolCriteria()

    def find_candidates(self, ride: Ride, source: CandidateSource) -> list[tuple[Ride, float]]:
        lat, lon = ride.destination_point
        rides = source.list_pool_candidates(
            pickup_landmark_id=ride.pickup_landmark_id,
            window_start=ride.scheduled_time - self.criteria.window,
            window_end=ride.scheduled_time + self.criteria.window,
            box=bounding_box(lat, lon, self.criteria.radius_km),
            exclude_pool_id=ride.pool_id,
        )
        return select_candidates(ride, rides, self.criteria)

    def merge(self, ride: Ride, source: CandidateSource, actor_id: str) -> list[Ride]:
        """Pull matching pending rides into ``ride``'s pool.

        Each candidate is claimed through ``source.join_pool`` first, so a ride
        another booking pooled in the meantime is skipped. Mutates the new ride
        and the matched rides in memory; the caller persists all of them in one
        transaction. Returns the matched rides, empty when the new ride stays
        pending.
        """
        merged = []
        for candidate, km in self.find_candidates(ride, source):
            if not source.join_pool(candidate.ride_id, ride.pool_id):
                logger.debug("Ride %s was pooled elsewhere first", candidate.ride_id)
                continue
            candidate.mark_pooled(ride.pool_id, actor_id)
            merged.append(candidate)
            logger.debug(
                "Ride %s joins pool %s (destination %.2f km apart)",
                candidate.ride_id,
                ride.pool_id,
                km,
            )
        if merged:
            ride.mark_pooled(ride.pool_id, actor_id)
        return merged
