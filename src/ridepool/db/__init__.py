"""Database persistence module."""

from .database import init_database
from .schema import (
    City,
    Landmark,
    Ride,
    RideEvent,
    RideLog,
    RideMessage,
    RidePassenger,
    ServiceMetadata,
    User,
)
from .transaction import transaction

__all__ = [
    "init_database",
    "City",
    "Landmark",
    "Ride",
    "RideEvent",
    "RideLog",
    "RideMessage",
    "RidePassenger",
    "ServiceMetadata",
    "User",
    "transaction",
]
