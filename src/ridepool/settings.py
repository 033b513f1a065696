from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServiceSettings(BaseSettings):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["text", "json"] = "text"
    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)

    model_config = SettingsConfigDict(env_prefix="RIDEPOOL_")


class DatabaseSettings(BaseSettings):
    url: str = "sqlite:///./db/ridepool.db"
    echo: bool = False

    model_config = SettingsConfigDict(env_prefix="DB_")


class RedisSettings(BaseSettings):
    enabled: bool = True
    host: str = "localhost"
    port: int = 6379
    password: str = ""
    db: int = 0

    model_config = SettingsConfigDict(env_prefix="REDIS_")


class APISettings(BaseSettings):
    key: str = ""

    model_config = SettingsConfigDict(env_prefix="API_")

    @model_validator(mode="after")
    def validate_credentials_provided(self) -> "APISettings":
        if not self.key:
            raise ValueError("Required credential not provided: API_KEY")
        return self


class CORSSettings(BaseSettings):
    origins: str = "http://localhost:5173,http://localhost:3000"

    model_config = SettingsConfigDict(env_prefix="CORS_")


class PoolingSettings(BaseSettings):
    """Thresholds used when searching for rides to merge into a new pool."""

    radius_km: float = Field(
        default=3.0,
        gt=0.0,
        description="Maximum distance between destinations of pooled rides",
    )
    window_minutes: int = Field(
        default=30,
        ge=0,
        description="Maximum difference between scheduled pickup times, either direction",
    )
    max_candidates: int = Field(
        default=3,
        ge=0,
        description="Maximum number of existing rides merged per booking",
    )

    model_config = SettingsConfigDict(env_prefix="POOLING_")


class RideSettings(BaseSettings):
    average_speed_kmh: float = Field(
        default=40.0,
        gt=0.0,
        description="Average speed used for the duration estimate at booking time",
    )
    enforce_city_boundary: bool = Field(
        default=False,
        description="Reject destinations outside the pickup city's boundary polygon",
    )

    model_config = SettingsConfigDict(env_prefix="RIDES_")


class Settings(BaseSettings):
    service: ServiceSettings = Field(default_factory=ServiceSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    api: APISettings = Field(default_factory=APISettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    pooling: PoolingSettings = Field(default_factory=PoolingSettings)
    rides: RideSettings = Field(default_factory=RideSettings)

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        case_sensitive=False,
    )


def get_settings() -> Settings:
    """Load and validate settings from environment variables."""
    return Settings()
