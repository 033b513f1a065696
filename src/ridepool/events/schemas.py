from typing import Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class RideLedgerEvent(BaseModel):
    """Base for events written to the ride ledger alongside the ride change."""

    event_id: UUID = Field(default_factory=uuid4)
    ride_id: str
    correlation_id: str | None = Field(
        default=None, description="Request correlation ID that produced the event"
    )


class RideCreatedEvent(RideLedgerEvent):
    """A ride was booked at a pickup landmark"""

    event_type: Literal["ride.created"] = "ride.created"
    pickup_landmark_id: str
    city_id: str
    passenger_id: str


class RideCompletedEvent(RideLedgerEvent):
    """A started ride was completed by its driver"""

    event_type: Literal["ride.completed"] = "ride.completed"
    driver_id: str
    city_id: str
    distance_km: float = Field(ge=0)
    total_fare: float = Field(ge=0)
    completed_passenger_ids: list[str]


class RideRatedEvent(RideLedgerEvent):
    """A passenger rated the driver of a completed ride"""

    event_type: Literal["ride.rated"] = "ride.rated"
    driver_id: str
    passenger_id: str
    rating: int = Field(ge=1, le=5)


LedgerEvent = RideCreatedEvent | RideCompletedEvent | RideRatedEvent

EVENT_TYPES: dict[str, type[RideLedgerEvent]] = {
    "ride.created": RideCreatedEvent,
    "ride.completed": RideCompletedEvent,
    "ride.rated": RideRatedEvent,
}


def parse_event(event_type: str, payload: str) -> LedgerEvent:
    """Rebuild a ledger event from its stored JSON payload."""
    try:
        model = EVENT_TYPES[event_type]
    except KeyError as e:
        raise ValueError(f"Unknown ride event type: {event_type}") from e
    return model.model_validate_json(payload)  # type: ignore[return-value]
