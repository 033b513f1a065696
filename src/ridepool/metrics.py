"""OpenTelemetry counters for ride lifecycle activity.

Instruments are created against the global meter provider, which is a no-op
until the hosting process installs an SDK provider.
"""

from functools import lru_cache

from opentelemetry import metrics


class RideMetrics:
    def __init__(self) -> None:
        meter = metrics.get_meter("ridepool")
        self._created = meter.create_counter(
            "ridepool_rides_created_total",
            description="Rides booked",
        )
        self._pooled = meter.create_counter(
            "ridepool_rides_pooled_total",
            description="Existing rides merged into a new ride's pool",
        )
        self._transitions = meter.create_counter(
            "ridepool_ride_transitions_total",
            description="Successful ride lifecycle operations",
        )
        self._rejections = meter.create_counter(
            "ridepool_ride_rejections_total",
            description="Ride lifecycle operations rejected with an error",
        )

    def ride_created(self) -> None:
        self._created.add(1)

    def rides_pooled(self, count: int) -> None:
        if count > 0:
            self._pooled.add(count)

    def transition(self, action: str) -> None:
        self._transitions.add(1, {"action": action})

    def rejection(self, code: str) -> None:
        self._rejections.add(1, {"code": code})


@lru_cache
def get_ride_metrics() -> RideMetrics:
    return RideMetrics()
