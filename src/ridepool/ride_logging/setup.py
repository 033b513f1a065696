"""Logging setup driven by the service settings."""

import logging
import sys
from typing import TYPE_CHECKING

from ridepool.core.correlation import CorrelationFilter

from .context import ContextFilter
from .filters import DefaultCorrelationFilter, PIIFilter
from .formatters import DevFormatter, JSONFormatter

if TYPE_CHECKING:
    from ridepool.settings import ServiceSettings

# Client and driver loggers that are chatty at INFO
QUIET_LOGGERS = ("httpx", "urllib3", "redis", "sqlalchemy.engine")


def build_handler(json_output: bool, environment: str) -> logging.Handler:
    """Stdout handler that adds ride and correlation fields, then masks PII."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter(environment) if json_output else DevFormatter())

    handler.addFilter(ContextFilter())
    handler.addFilter(CorrelationFilter())
    handler.addFilter(DefaultCorrelationFilter())
    handler.addFilter(PIIFilter())
    return handler


def setup_logging(settings: "ServiceSettings") -> None:
    """Route every record, uvicorn's included, through one root handler."""
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(
        build_handler(settings.log_format == "json", settings.environment)
    )
    root_logger.setLevel(settings.log_level)

    quiet_level = max(logging.WARNING, root_logger.level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)
