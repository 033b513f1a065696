"""SQLAlchemy ORM models for ride persistence."""

from datetime import datetime

from sqlalchemy import Boolean, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ridepool.core.clock import utc_now


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    role: Mapped[str] = mapped_column(String, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)
    rating_average: Mapped[float] = mapped_column(Float, default=0.0)
    rating_count: Mapped[int] = mapped_column(Integer, default=0)
    rides_completed: Mapped[int] = mapped_column(Integer, default=0)
    total_distance: Mapped[float] = mapped_column(Float, default=0.0)
    total_earnings: Mapped[float] = mapped_column(Float, default=0.0)
    created_at: Mapped[datetime] = mapped_column(default=lambda: utc_now())

    __table_args__ = (Index("idx_user_role", "role"),)


class City(Base):
    __tablename__ = "cities"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    boundary_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    total_rides: Mapped[int] = mapped_column(Integer, default=0)
    total_revenue: Mapped[float] = mapped_column(Float, default=0.0)


class Landmark(Base):
    __tablename__ = "landmarks"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    city_id: Mapped[str] = mapped_column(ForeignKey("cities.id"), nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    address: Mapped[str] = mapped_column(String, nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    pickup_count: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        Index("idx_landmark_city", "city_id"),
        Index("idx_landmark_location", "latitude", "longitude"),
    )


class Ride(Base):
    __tablename__ = "rides"

    ride_id: Mapped[str] = mapped_column(String, primary_key=True)
    pickup_landmark_id: Mapped[str] = mapped_column(ForeignKey("landmarks.id"), nullable=False)
    city_id: Mapped[str] = mapped_column(ForeignKey("cities.id"), nullable=False)
    destination_address: Mapped[str] = mapped_column(String, nullable=False)
    destination_lat: Mapped[float] = mapped_column(Float, nullable=False)
    destination_lon: Mapped[float] = mapped_column(Float, nullable=False)
    scheduled_time: Mapped[datetime] = mapped_column(nullable=False)
    estimated_distance: Mapped[float] = mapped_column(Float, nullable=False)
    estimated_duration: Mapped[int] = mapped_column(Integer, nullable=False)
    pool_id: Mapped[str] = mapped_column(String, nullable=False)
    driver_id: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False)
    base_fare: Mapped[float] = mapped_column(Float, nullable=False)
    distance_fare: Mapped[float] = mapped_column(Float, nullable=False)
    total_fare: Mapped[float] = mapped_column(Float, nullable=False)
    discount: Mapped[float] = mapped_column(Float, default=0.0)
    currency: Mapped[str] = mapped_column(String, default="INR")
    route_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String, nullable=True)
    driver_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    driver_lon: Mapped[float | None] = mapped_column(Float, nullable=True)
    driver_location_updated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=lambda: utc_now())
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: utc_now(),
        onupdate=lambda: utc_now(),
    )

    __table_args__ = (
        Index("idx_ride_status", "status"),
        Index("idx_ride_pool", "pool_id"),
        Index("idx_ride_driver_status", "driver_id", "status"),
        Index("idx_ride_pickup_schedule", "pickup_landmark_id", "status", "scheduled_time"),
        Index("idx_ride_destination", "destination_lat", "destination_lon"),
    )


class RidePassenger(Base):
    __tablename__ = "ride_passengers"

    ride_id: Mapped[str] = mapped_column(ForeignKey("rides.ride_id"), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    fare: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False)
    pickup_time: Mapped[datetime | None] = mapped_column(nullable=True)
    dropoff_time: Mapped[datetime | None] = mapped_column(nullable=True)
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rating_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    rated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (Index("idx_passenger_user", "user_id"),)


class RideLog(Base):
    __tablename__ = "ride_logs"

    ride_id: Mapped[str] = mapped_column(ForeignKey("rides.ride_id"), primary_key=True)
    seq: Mapped[int] = mapped_column(Integer, primary_key=True)
    action: Mapped[str] = mapped_column(String, nullable=False)
    actor_id: Mapped[str | None] = mapped_column(String, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(nullable=False)
    details_json: Mapped[str] = mapped_column(Text, default="{}")


class RideMessage(Base):
    __tablename__ = "ride_messages"

    ride_id: Mapped[str] = mapped_column(ForeignKey("rides.ride_id"), primary_key=True)
    seq: Mapped[int] = mapped_column(Integer, primary_key=True)
    sender_id: Mapped[str] = mapped_column(String, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)


class RideEvent(Base):
    """Ride event ledger. Rows are written with the ride change and applied once."""

    __tablename__ = "ride_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    event_type: Mapped[str] = mapped_column(String, nullable=False)
    ride_id: Mapped[str] = mapped_column(String, nullable=False)
    payload_json: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=lambda: utc_now())
    applied_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (Index("idx_event_pending", "applied_at", "id"),)


class ServiceMetadata(Base):
    __tablename__ = "service_metadata"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: utc_now(),
        onupdate=lambda: utc_now(),
    )
