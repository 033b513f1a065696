"""Core utilities for the ride-pooling service."""

from .exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    PermanentError,
    PersistenceError,
    RidePoolError,
    TransientError,
    ValidationError,
)

__all__ = [
    "RidePoolError",
    "TransientError",
    "PersistenceError",
    "PermanentError",
    "ValidationError",
    "NotFoundError",
    "ForbiddenError",
    "InvalidStateError",
    "ConflictError",
]
