"""Process entry point for the ride-pooling API."""

import logging

import uvicorn

from ridepool.api.app import create_app
from ridepool.ride_logging import setup_logging
from ridepool.settings import get_settings

logger = logging.getLogger(__name__)


def main() -> None:
    """Configure logging, build the app and serve it."""
    settings = get_settings()

    setup_logging(settings.service)

    app = create_app(settings)

    logger.info(
        "Starting ride-pooling service on %s:%d", settings.service.host, settings.service.port
    )
    uvicorn.run(
        app,
        host=settings.service.host,
        port=settings.service.port,
        log_level=settings.service.log_level.lower(),
        log_config=None,
    )


if __name__ == "__main__":
    main()
