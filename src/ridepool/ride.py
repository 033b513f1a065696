"""Ride aggregate, passenger records and the ride state machine."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ridepool.actors import Actor
from ridepool.core.clock import utc_now
from ridepool.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    ValidationError,
)
from ridepool.fare import FareBreakdown


class RideStatus(str, Enum):
    """Ride lifecycle states."""

    PENDING = "pending"
    POOLING = "pooling"
    ASSIGNED = "assigned"
    STARTED = "started"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({RideStatus.COMPLETED, RideStatus.CANCELLED})

# Statuses in which a driver is occupied by a ride.
ACTIVE_DRIVER_STATUSES = frozenset({RideStatus.ASSIGNED, RideStatus.STARTED})

# ASSIGNED -> PENDING is only reachable through a driver releasing the ride.
VALID_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.PENDING: {RideStatus.POOLING, RideStatus.ASSIGNED, RideStatus.CANCELLED},
    RideStatus.POOLING: {RideStatus.ASSIGNED, RideStatus.CANCELLED},
    RideStatus.ASSIGNED: {RideStatus.STARTED, RideStatus.CANCELLED, RideStatus.PENDING},
    RideStatus.STARTED: {RideStatus.COMPLETED},
    RideStatus.COMPLETED: set(),
    RideStatus.CANCELLED: set(),
}


class RideAction(str, Enum):
    """Audit log actions."""

    RIDE_CREATED = "ride_created"
    RIDE_POOLED = "ride_pooled"
    DRIVER_ASSIGNED = "driver_assigned"
    DRIVER_CANCELLED = "driver_cancelled"
    RIDE_CANCELLED = "ride_cancelled"
    RIDE_STARTED = "ride_started"
    RIDE_COMPLETED = "ride_completed"
    RIDE_RATED = "ride_rated"


class PassengerStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class GeoPoint(BaseModel):
    """GeoJSON point; coordinates are ``(longitude, latitude)``."""

    model_config = ConfigDict(frozen=True)

    type: Literal["Point"] = "Point"
    coordinates: tuple[float, float]

    @field_validator("coordinates")
    @classmethod
    def validate_range(cls, v: tuple[float, float]) -> tuple[float, float]:
        lon, lat = v
        if not -180.0 <= lon <= 180.0:
            raise ValueError(f"Longitude out of range: {lon}")
        if not -90.0 <= lat <= 90.0:
            raise ValueError(f"Latitude out of range: {lat}")
        return v

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]

    def as_lat_lon(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


class Destination(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: str = Field(min_length=1)
    location: GeoPoint


class RideFare(BaseModel):
    """Fare snapshot taken at booking time. Never recalculated."""

    model_config = ConfigDict(frozen=True)

    base_fare: float = Field(ge=0)
    distance_fare: float = Field(ge=0)
    total_fare: float = Field(ge=0)
    discount: float = Field(default=0.0, ge=0, le=40)
    currency: str = "INR"

    @classmethod
    def from_breakdown(cls, breakdown: FareBreakdown) -> "RideFare":
        return cls(
            base_fare=breakdown.base_fare,
            distance_fare=breakdown.distance_fare,
            total_fare=breakdown.total_fare,
            discount=breakdown.discount,
            currency=breakdown.currency,
        )


class PassengerRating(BaseModel):
    model_config = ConfigDict(frozen=True)

    driver: int = Field(ge=1, le=5)
    comment: str | None = None
    created_at: datetime


class Passenger(BaseModel):
    """A passenger's seat on a ride, with its own status and rating.

    Status moves pending -> confirmed -> completed, or to cancelled. A driver
    releasing the ride moves confirmed back to pending.
    """

    model_config = ConfigDict(validate_assignment=True)

    user_id: str
    fare: float = Field(ge=0)
    status: PassengerStatus = PassengerStatus.PENDING
    pickup_time: datetime | None = None
    dropoff_time: datetime | None = None
    rating: PassengerRating | None = None

    def confirm(self) -> None:
        if self.status == PassengerStatus.PENDING:
            self.status = PassengerStatus.CONFIRMED

    def release(self) -> None:
        if self.status == PassengerStatus.CONFIRMED:
            self.status = PassengerStatus.PENDING

    def cancel(self) -> None:
        self.status = PassengerStatus.CANCELLED

    def mark_picked_up(self, at: datetime) -> None:
        if self.status == PassengerStatus.CONFIRMED:
            self.pickup_time = at

    def complete(self, at: datetime) -> bool:
        """Complete a confirmed seat. Returns False for any other status."""
        if self.status != PassengerStatus.CONFIRMED:
            return False
        self.status = PassengerStatus.COMPLETED
        self.dropoff_time = at
        return True

    def rate(self, rating: int, comment: str | None, at: datetime) -> PassengerRating:
        if self.status != PassengerStatus.COMPLETED:
            raise ForbiddenError("Not authorized to rate this ride")
        if self.rating is not None:
            raise ConflictError("You have already rated this ride")
        self.rating = PassengerRating(driver=rating, comment=comment, created_at=at)
        return self.rating


class RideLogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: RideAction
    actor_id: str | None
    timestamp: datetime
    details: dict[str, Any] = Field(default_factory=dict)


class RideMessage(BaseModel):
    sender_id: str
    text: str
    timestamp: datetime
    is_read: bool = False


class DriverLocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    coordinates: tuple[float, float]  # (longitude, latitude)
    last_updated: datetime

    @property
    def latitude(self) -> float:
        return self.coordinates[1]

    @property
    def longitude(self) -> float:
        return self.coordinates[0]


class Ride(BaseModel):
    """Ride aggregate with state machine logic.

    All mutations go through methods so that status guards, passenger rules
    and the audit log stay in one place. Fields fixed at booking time are
    frozen and reject assignment.
    """

    model_config = ConfigDict(validate_assignment=True)

    ride_id: str = Field(default_factory=lambda: str(uuid4()))
    pickup_landmark_id: str = Field(frozen=True)
    city_id: str = Field(frozen=True)
    destination: Destination = Field(frozen=True)
    scheduled_time: datetime
    estimated_distance: float = Field(ge=0, frozen=True)
    estimated_duration: int = Field(ge=0, frozen=True)
    pool_id: str = Field(default_factory=lambda: str(uuid4()))
    passengers: list[Passenger] = Field(min_length=1)
    driver_id: str | None = None
    # Reserved for route drawing; no operation populates it yet.
    route: list[tuple[float, float]] | None = None
    status: RideStatus = RideStatus.PENDING
    fare: RideFare = Field(frozen=True)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    cancellation_reason: str | None = None
    logs: list[RideLogEntry] = Field(default_factory=list)
    messages: list[RideMessage] = Field(default_factory=list)
    driver_location: DriverLocation | None = None
    created_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def book(
        cls,
        passenger_id: str,
        pickup_landmark_id: str,
        city_id: str,
        destination: Destination,
        scheduled_time: datetime,
        distance_km: float,
        duration_minutes: int,
        fare: FareBreakdown,
    ) -> "Ride":
        """Create a pending ride in its own fresh pool for one booking passenger."""
        ride = cls(
            pickup_landmark_id=pickup_landmark_id,
            city_id=city_id,
            destination=destination,
            scheduled_time=scheduled_time,
            estimated_distance=distance_km,
            estimated_duration=duration_minutes,
            passengers=[Passenger(user_id=passenger_id, fare=fare.fare_per_passenger)],
            fare=RideFare.from_breakdown(fare),
        )
        ride.record(RideAction.RIDE_CREATED, passenger_id, fare_details=fare.model_dump())
        return ride

    # --- Queries ---

    @property
    def destination_point(self) -> tuple[float, float]:
        """Destination as ``(lat, lon)``."""
        return self.destination.location.as_lat_lon()

    def is_passenger(self, user_id: str) -> bool:
        return any(p.user_id == user_id for p in self.passengers)

    def is_driver(self, user_id: str) -> bool:
        return self.driver_id is not None and self.driver_id == user_id

    def can_view(self, actor: Actor) -> bool:
        return actor.is_admin or self.is_driver(actor.id) or self.is_passenger(actor.id)

    def passenger_entry(self, user_id: str) -> Passenger | None:
        return next((p for p in self.passengers if p.user_id == user_id), None)

    # --- State machine ---

    def require_status(self, *allowed: RideStatus, action: str) -> None:
        if self.status not in allowed:
            raise InvalidStateError(
                f"Ride cannot be {action} in {self.status.value} status",
                status=self.status.value,
            )

    def transition_to(self, new_status: RideStatus) -> None:
        """Transition to a new status with validation."""
        if self.status.is_terminal:
            raise InvalidStateError(
                f"Cannot transition from terminal status {self.status.value}",
                status=self.status.value,
            )

        if new_status not in VALID_TRANSITIONS[self.status]:
            raise InvalidStateError(
                f"Invalid transition from {self.status.value} to {new_status.value}",
                status=self.status.value,
            )

        self.status = new_status

    def record(self, action: RideAction, actor_id: str | None, **details: Any) -> RideLogEntry:
        entry = RideLogEntry(
            action=action, actor_id=actor_id, timestamp=utc_now(), details=details
        )
        self.logs.append(entry)
        return entry

    def mark_pooled(self, pool_id: str, actor_id: str) -> None:
        """Join ``pool_id``. The booking ride is already pooled when it founds the pool."""
        self.require_status(RideStatus.PENDING, action="pooled")
        self.pool_id = pool_id
        self.transition_to(RideStatus.POOLING)
        self.record(RideAction.RIDE_POOLED, actor_id, pool_id=pool_id)

    def assign_driver(self, driver_id: str) -> None:
        self.require_status(RideStatus.PENDING, RideStatus.POOLING, action="accepted")
        self.transition_to(RideStatus.ASSIGNED)
        self.driver_id = driver_id
        for passenger in self.passengers:
            passenger.confirm()
        self.record(RideAction.DRIVER_ASSIGNED, driver_id)

    def release_driver(self, driver_id: str, reason: str) -> None:
        """Driver backs out: the ride returns to pending for another driver."""
        self.require_status(RideStatus.ASSIGNED, action="released by the driver")
        if not self.is_driver(driver_id):
            raise ForbiddenError("Not authorized to release this ride")
        self.transition_to(RideStatus.PENDING)
        self.driver_id = None
        for passenger in self.passengers:
            passenger.release()
        self.record(RideAction.DRIVER_CANCELLED, driver_id, reason=reason)

    def cancel(self, actor_id: str, reason: str, passenger_id: str | None = None) -> None:
        self.require_status(
            RideStatus.PENDING, RideStatus.POOLING, RideStatus.ASSIGNED, action="cancelled"
        )
        self.transition_to(RideStatus.CANCELLED)
        self.cancellation_reason = reason
        if passenger_id is not None:
            entry = self.passenger_entry(passenger_id)
            if entry is not None:
                entry.cancel()
        self.record(RideAction.RIDE_CANCELLED, actor_id, reason=reason)

    def start(self, driver_id: str) -> None:
        self.require_status(RideStatus.ASSIGNED, action="started")
        if not self.is_driver(driver_id):
            raise ForbiddenError("Not authorized to start this ride")
        now = utc_now()
        self.transition_to(RideStatus.STARTED)
        self.started_at = now
        for passenger in self.passengers:
            passenger.mark_picked_up(now)
        self.record(RideAction.RIDE_STARTED, driver_id)

    def complete(self, driver_id: str) -> list[Passenger]:
        """Complete the ride. Returns the passengers whose seats were completed."""
        self.require_status(RideStatus.STARTED, action="completed")
        if not self.is_driver(driver_id):
            raise ForbiddenError("Not authorized to complete this ride")
        now = utc_now()
        self.transition_to(RideStatus.COMPLETED)
        self.completed_at = now
        completed = [p for p in self.passengers if p.complete(now)]
        self.record(RideAction.RIDE_COMPLETED, driver_id)
        return completed

    def rate(self, user_id: str, rating: int, comment: str | None = None) -> PassengerRating:
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("Please provide a valid rating between 1 and 5")
        self.require_status(RideStatus.COMPLETED, action="rated")

        entry = next(
            (
                p
                for p in self.passengers
                if p.user_id == user_id and p.status == PassengerStatus.COMPLETED
            ),
            None,
        )
        if entry is None:
            raise ForbiddenError("Not authorized to rate this ride")

        stored = entry.rate(rating, comment, utc_now())
        self.record(RideAction.RIDE_RATED, user_id, rating=rating, comment=comment)
        return stored

    def add_message(self, sender_id: str, text: str) -> RideMessage:
        if not text or not text.strip():
            raise ValidationError("Please provide a message text")
        if self.status.is_terminal:
            raise InvalidStateError(
                f"Cannot send messages on a {self.status.value} ride",
                status=self.status.value,
            )
        message = RideMessage(sender_id=sender_id, text=text, timestamp=utc_now())
        self.messages.append(message)
        return message

    def update_driver_location(self, driver_id: str, lat: float, lng: float) -> DriverLocation:
        if self.status not in ACTIVE_DRIVER_STATUSES:
            raise InvalidStateError(
                f"Cannot update location for {self.status.value} ride",
                status=self.status.value,
            )
        if not self.is_driver(driver_id):
            raise ForbiddenError("Not authorized to update location for this ride")
        if not -90.0 <= lat <= 90.0 or not -180.0 <= lng <= 180.0:
            raise ValidationError("Please provide a valid latitude and longitude")
        self.driver_location = DriverLocation(coordinates=(lng, lat), last_updated=utc_now())
        return self.driver_location
