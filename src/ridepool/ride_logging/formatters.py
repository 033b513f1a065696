"""Log formatters that render the ride a record concerns next to its message."""

import json
import logging
from datetime import UTC, datetime
from typing import Any

# Record attribute -> key inside the "ride" object
RIDE_FIELDS = {
    "ride_id": "id",
    "pool_id": "pool_id",
    "driver_id": "driver_id",
    "passenger_id": "passenger_id",
}


def ride_context(record: logging.LogRecord) -> dict[str, Any]:
    """Ride fields carried by ``record``, keyed for output, unset ones omitted."""
    context = {}
    for attr, key in RIDE_FIELDS.items():
        value = getattr(record, attr, None)
        if value is not None:
            context[key] = value
    return context


class JSONFormatter(logging.Formatter):
    """One JSON object per line for log shipping.

    Ride fields are grouped under ``ride`` so a single ride or pool can be
    filtered on without knowing which operation logged the line. Warnings and
    errors also carry their source location.
    """

    def __init__(self, environment: str = "development", service: str = "ridepool"):
        super().__init__()
        self.environment = environment
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service,
            "env": self.environment,
        }

        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id and correlation_id != "-":
            log_data["correlation_id"] = correlation_id

        ride = ride_context(record)
        if ride:
            log_data["ride"] = ride

        actor_id = getattr(record, "actor_id", None)
        if actor_id is not None:
            log_data["actor_id"] = actor_id

        if record.levelno >= logging.WARNING:
            log_data["source"] = f"{record.module}:{record.lineno}"

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class DevFormatter(logging.Formatter):
    """Single readable line with ride fields appended as ``key=value`` pairs."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s [%(levelname)8s] [corr=%(correlation_id)s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )

    def formatMessage(self, record: logging.LogRecord) -> str:
        # Before the traceback, which format() appends afterwards
        line = super().formatMessage(record)
        pairs = " ".join(f"{key}={value}" for key, value in ride_context(record).items())
        return f"{line} [{pairs}]" if pairs else line
