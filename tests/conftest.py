import os

# Credential fields have no defaults (services must fail without secrets).
# Provide test values so Settings() can be constructed in tests.
os.environ.setdefault("API_KEY", "test-api-key")
os.environ.setdefault("REDIS_ENABLED", "false")

from unittest.mock import Mock

import pytest

from ridepool.db import init_database
from ridepool.realtime import RedisPublisher
from ridepool.rides import RideService
from ridepool.settings import Settings
from tests.factories import WorldFactory


@pytest.fixture
def temp_sqlite_db(tmp_path):
    """Temporary SQLite database URL for persistence tests."""
    return f"sqlite:///{tmp_path / 'test_ridepool.db'}"


@pytest.fixture
def session_factory(temp_sqlite_db):
    """Session factory over a fresh file-backed SQLite database."""
    return init_database(temp_sqlite_db)


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def world(session_factory) -> WorldFactory:
    """Seeds one city with one landmark; add more users and landmarks per test."""
    factory = WorldFactory(session_factory)
    factory.city()
    factory.landmark()
    return factory


@pytest.fixture
def mock_publisher():
    """Mock Redis publisher for real-time fan-out tests."""
    return Mock(spec=RedisPublisher)


@pytest.fixture
def ride_service(session_factory, settings, mock_publisher) -> RideService:
    return RideService(session_factory, settings, publisher=mock_publisher)


@pytest.fixture
def app(settings, session_factory, mock_publisher):
    """API app over the test database with real-time fan-out disabled."""
    from ridepool.api.app import create_app
    from ridepool.api.rate_limit import limiter, ws_limiter

    limiter.enabled = False
    ws_limiter.reset()
    yield create_app(settings=settings, session_factory=session_factory, publisher=mock_publisher)
    limiter.enabled = True
    ws_limiter.reset()


@pytest.fixture
def test_client(app):
    from fastapi.testclient import TestClient

    return TestClient(app, raise_server_exceptions=False)
