"""Standardized exception hierarchy for the ride-pooling service."""

from typing import Any


class RidePoolError(Exception):
    """Base exception for all ride-pooling errors."""

    code = "internal_error"
    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "detail": self.message, "details": self.details}


class TransientError(RidePoolError):
    """Errors that may succeed if the caller resubmits."""

    code = "transient_error"
    status_code = 503


class PersistenceError(TransientError):
    """Database write or read failed."""

    code = "persistence_error"


class PermanentError(RidePoolError):
    """Errors that will not succeed on resubmission."""

    code = "permanent_error"
    status_code = 400


class ValidationError(PermanentError):
    """Missing or malformed input."""

    code = "validation_error"
    status_code = 400


class NotFoundError(PermanentError):
    """Requested entity does not exist."""

    code = "not_found"
    status_code = 404


class ForbiddenError(PermanentError):
    """Actor's role or ownership does not allow the action."""

    code = "forbidden"
    status_code = 403


class InvalidStateError(PermanentError):
    """Action is illegal for the ride's current status."""

    code = "invalid_state"
    status_code = 409

    def __init__(self, message: str, status: str, details: dict[str, Any] | None = None):
        super().__init__(message, {"status": status, **(details or {})})
        self.status = status


class ConflictError(PermanentError):
    """Action collides with existing state (active ride, duplicate rating, lost race)."""

    code = "conflict"
    status_code = 409
