"""FastAPI application factory for the ride-pooling service."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from slowapi.errors import RateLimitExceeded
from starlette.concurrency import run_in_threadpool

from ridepool.api.auth import verify_api_key
from ridepool.api.errors import register_exception_handlers
from ridepool.api.rate_limit import limiter, rate_limit_exceeded_handler
from ridepool.api.redis_subscriber import RedisSubscriber
from ridepool.api.routes import landmarks, rides
from ridepool.api.websocket import manager as connection_manager
from ridepool.api.websocket import router as websocket_router
from ridepool.core.correlation import with_correlation
from ridepool.db import init_database
from ridepool.realtime import RedisPublisher
from ridepool.rides import RideService
from ridepool.settings import Settings, get_settings
from ridepool.stats import StatsProjector

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.orm import sessionmaker

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Request-ID"


def create_app(
    settings: Settings | None = None,
    session_factory: sessionmaker[Any] | None = None,
    redis_client: Redis[str] | None = None,
    publisher: RedisPublisher | None = None,
) -> FastAPI:
    """Create FastAPI application with injected dependencies.

    Args:
        settings: Service settings; loaded from the environment when omitted
        session_factory: SQLAlchemy session factory; built from settings when omitted
        redis_client: Async Redis client for room fan-out (optional)
        publisher: Redis publisher for ride channel events (optional)
    """
    settings = settings or get_settings()
    if session_factory is None:
        session_factory = init_database(settings.database.url, echo=settings.database.echo)

    if settings.redis.enabled:
        if publisher is None:
            publisher = RedisPublisher(settings.redis.model_dump())
        if redis_client is None:
            import redis.asyncio as aioredis

            redis_client = aioredis.Redis(
                host=settings.redis.host,
                port=settings.redis.port,
                db=settings.redis.db,
                password=settings.redis.password,
                decode_responses=True,
            )

    projector = StatsProjector(session_factory)
    ride_service = RideService(
        session_factory,
        settings,
        publisher=publisher,
        projector=projector,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Replay unapplied ledger events, then start room fan-out."""
        try:
            replayed = await run_in_threadpool(projector.apply_pending)
            if replayed:
                logger.info("Replayed %d pending ride ledger events", replayed)
        except Exception:
            logger.exception("Ledger replay failed; events stay pending")

        subscriber = None
        if redis_client is not None:
            subscriber = RedisSubscriber(redis_client, connection_manager)
            app.state.subscriber = subscriber
            await subscriber.start()
        yield
        if subscriber is not None:
            await subscriber.stop()
        if publisher is not None:
            publisher.close()

    app = FastAPI(
        title="Ride Pooling API",
        version="0.1.0",
        description="Book, pool and drive shared rides from fixed pickup landmarks",
        lifespan=lifespan,
    )

    # Auto-instrument FastAPI (generates traces for all HTTP requests)
    FastAPIInstrumentor.instrument_app(app)

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)  # type: ignore[arg-type]
    register_exception_handlers(app)

    # Set core dependencies immediately (not in lifespan) so they're available for testing
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.redis_client = redis_client
    app.state.ride_service = ride_service
    app.state.connection_manager = connection_manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins.split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def correlation_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid4())
        with with_correlation(correlation_id):
            response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response

    app.include_router(rides.router, prefix="/rides", tags=["rides"])
    app.include_router(landmarks.router, prefix="/landmarks", tags=["landmarks"])
    app.include_router(websocket_router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint for monitoring (unauthenticated for infrastructure)."""
        return {"status": "healthy"}

    @app.get("/auth/validate")
    async def validate_api_key_endpoint(
        _: str = Depends(verify_api_key),
    ) -> dict[str, str]:
        """Returns 200 for a valid API key, 401 otherwise."""
        return {"status": "authenticated"}

    return app
