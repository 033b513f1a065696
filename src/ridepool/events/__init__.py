from .schemas import (
    EVENT_TYPES,
    LedgerEvent,
    RideCompletedEvent,
    RideCreatedEvent,
    RideLedgerEvent,
    RideRatedEvent,
    parse_event,
)

__all__ = [
    "EVENT_TYPES",
    "LedgerEvent",
    "RideCompletedEvent",
    "RideCreatedEvent",
    "RideLedgerEvent",
    "RideRatedEvent",
    "parse_event",
]
