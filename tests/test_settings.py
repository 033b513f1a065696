import pytest
from pydantic import ValidationError

from ridepool.settings import (
    APISettings,
    PoolingSettings,
    RedisSettings,
    RideSettings,
    Settings,
    get_settings,
)


@pytest.mark.unit
class TestPoolingSettings:
    def test_defaults(self):
        settings = PoolingSettings()
        assert settings.radius_km == 3.0
        assert settings.window_minutes == 30
        assert settings.max_candidates == 3

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("POOLING_RADIUS_KM", "1.5")
        monkeypatch.setenv("POOLING_WINDOW_MINUTES", "15")
        monkeypatch.setenv("POOLING_MAX_CANDIDATES", "0")

        settings = PoolingSettings()
        assert settings.radius_km == 1.5
        assert settings.window_minutes == 15
        assert settings.max_candidates == 0

    def test_validation(self):
        with pytest.raises(ValidationError):
            PoolingSettings(radius_km=0)

        with pytest.raises(ValidationError):
            PoolingSettings(window_minutes=-1)


@pytest.mark.unit
class TestRideSettings:
    def test_defaults(self):
        settings = RideSettings()
        assert settings.average_speed_kmh == 40.0
        assert settings.enforce_city_boundary is False

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("RIDES_ENFORCE_CITY_BOUNDARY", "true")
        assert RideSettings().enforce_city_boundary is True


@pytest.mark.unit
class TestAPISettings:
    def test_key_required(self, monkeypatch):
        monkeypatch.delenv("API_KEY", raising=False)

        with pytest.raises(ValidationError, match="API_KEY"):
            APISettings()

    def test_key_from_env(self, monkeypatch):
        monkeypatch.setenv("API_KEY", "secret")
        assert APISettings().key == "secret"


@pytest.mark.unit
class TestSettings:
    def test_redis_can_be_disabled(self, monkeypatch):
        monkeypatch.setenv("REDIS_ENABLED", "false")
        assert RedisSettings().enabled is False

    def test_get_settings(self, monkeypatch):
        monkeypatch.setenv("API_KEY", "secret")
        monkeypatch.setenv("POOLING_RADIUS_KM", "2.0")

        settings = get_settings()

        assert isinstance(settings, Settings)
        assert settings.api.key == "secret"
        assert settings.pooling.radius_km == 2.0
        assert settings.database.url.startswith("sqlite")
