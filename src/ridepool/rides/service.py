"""Ride lifecycle operations.

Every operation is a request-scoped unit of work: load the ride, check the
actor and the current status, apply the transition on the aggregate, and
persist the ride together with any pool siblings and ledger events in one
transaction. Counters and real-time fan-out happen after commit and never
fail the operation.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from pydantic import BaseModel
from sqlalchemy.orm import sessionmaker

from ridepool.actors import Actor, Role, UserProfile
from ridepool.core.clock import to_utc_naive
from ridepool.core.correlation import get_current_correlation_id
from ridepool.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RidePoolError,
    ValidationError,
)
from ridepool.db.repositories import (
    CityRepository,
    EventRepository,
    RideRepository,
    UserRepository,
)
from ridepool.db.transaction import transaction
from ridepool.events import RideCompletedEvent, RideCreatedEvent, RideRatedEvent
from ridepool.fare import FareCalculator, estimate_duration_minutes
from ridepool.geo import distance, find_nearest_landmarks, is_point_in_boundary
from ridepool.metrics import RideMetrics, get_ride_metrics
from ridepool.places import Landmark
from ridepool.pooling import PoolCriteria, PoolingEngine
from ridepool.realtime import (
    ChatMessage,
    DriverLocationMessage,
    DriverReleasedMessage,
    RedisPublisher,
    RideChannelMessage,
)
from ridepool.ride import (
    DriverLocation,
    Destination,
    PassengerRating,
    Ride,
    RideMessage,
    RideStatus,
)
from ridepool.ride_logging import log_context, log_ride_context
from ridepool.settings import Settings
from ridepool.stats import StatsProjector

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class RidePage(BaseModel):
    rides: list[Ride]
    total: int
    page: int
    limit: int

    @property
    def has_next(self) -> bool:
        return self.page * self.limit < self.total

    @property
    def has_prev(self) -> bool:
        return self.page > 1


class RideService:
    """Ride lifecycle operations over a SQLAlchemy session factory."""

    def __init__(
        self,
        session_factory: sessionmaker[Any],
        settings: Settings,
        publisher: RedisPublisher | None = None,
        projector: StatsProjector | None = None,
        metrics: RideMetrics | None = None,
    ):
        self.session_factory = session_factory
        self.settings = settings
        self.publisher = publisher
        self.projector = projector or StatsProjector(session_factory)
        self.metrics = metrics or get_ride_metrics()
        self.fare_calculator = FareCalculator()
        self.pooling = PoolingEngine(PoolCriteria.from_settings(settings.pooling))

    # --- Queries ---

    def get_actor(self, user_id: str) -> UserProfile | None:
        with self.session_factory() as session:
            return UserRepository(session).get(user_id)

    def get_ride(self, actor: Actor, ride_id: str) -> Ride:
        with self.session_factory() as session:
            ride = self._load(RideRepository(session), ride_id)
        if not ride.can_view(actor):
            raise ForbiddenError("Not authorized to view this ride")
        return ride

    def list_for_actor(self, actor: Actor) -> list[Ride]:
        """Drivers see the rides they drive; everyone else the rides they ride in."""
        with self.session_factory() as session:
            repo = RideRepository(session)
            if actor.role == Role.DRIVER:
                return repo.list_by_driver(actor.id)
            return repo.list_by_passenger(actor.id)

    def list_all(
        self,
        actor: Actor,
        page: int = 1,
        limit: int = 10,
        sort: str = "-created_at",
        status: RideStatus | None = None,
        city_id: str | None = None,
        driver_id: str | None = None,
        pool_id: str | None = None,
    ) -> RidePage:
        if not actor.is_admin:
            raise ForbiddenError("Only admins can list all rides")
        if page < 1 or not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(
                f"page must be at least 1 and limit between 1 and {MAX_PAGE_SIZE}"
            )
        with self.session_factory() as session:
            rides, total = RideRepository(session).list_rides(
                page=page,
                limit=limit,
                sort=sort,
                status=status,
                city_id=city_id,
                driver_id=driver_id,
                pool_id=pool_id,
            )
        return RidePage(rides=rides, total=total, page=page, limit=limit)

    def nearby_landmarks(
        self, lat: float, lng: float, radius_km: float = 5.0
    ) -> list[tuple[Landmark, float]]:
        if not -90.0 <= lat <= 90.0 or not -180.0 <= lng <= 180.0:
            raise ValidationError("Please provide a valid latitude and longitude")
        with self.session_factory() as session:
            landmarks = CityRepository(session).list_active_landmarks_near(lat, lng, radius_km)
        return find_nearest_landmarks((lat, lng), landmarks, max_distance_km=radius_km)

    # --- Lifecycle ---

    def create(
        self,
        actor: Actor,
        pickup_landmark_id: str,
        destination: Destination,
        scheduled_time: datetime,
        passenger_count: int = 1,
    ) -> Ride:
        """Book a ride and opportunistically merge it with compatible pending rides."""
        with log_context(passenger_id=actor.id), self._operation("create"):
            if actor.role != Role.PASSENGER:
                raise ForbiddenError("Only passengers can book rides")
            if passenger_count < 1:
                raise ValidationError("Passenger count must be at least 1")

            with self.session_factory() as session, transaction(session):
                cities = CityRepository(session)
                landmark = cities.get_landmark(pickup_landmark_id)
                if landmark is None or not landmark.is_active:
                    raise NotFoundError(
                        "Pickup landmark not found", {"landmark_id": pickup_landmark_id}
                    )
                if self.settings.rides.enforce_city_boundary:
                    city = cities.get_city(landmark.city_id)
                    if (
                        city is not None
                        and city.boundary
                        and not is_point_in_boundary(
                            destination.location.as_lat_lon(), city.boundary
                        )
                    ):
                        raise ValidationError(
                            "Destination is outside the service area",
                            {"city_id": city.id},
                        )

                distance_km = distance(
                    (landmark.latitude, landmark.longitude),
                    destination.location.as_lat_lon(),
                )
                ride = Ride.book(
                    passenger_id=actor.id,
                    pickup_landmark_id=landmark.id,
                    city_id=landmark.city_id,
                    destination=destination,
                    scheduled_time=to_utc_naive(scheduled_time),
                    distance_km=distance_km,
                    duration_minutes=estimate_duration_minutes(
                        distance_km, self.settings.rides.average_speed_kmh
                    ),
                    fare=self.fare_calculator.calculate(distance_km, passenger_count),
                )

                with log_ride_context(ride.ride_id, pool_id=ride.pool_id):
                    repo = RideRepository(session)
                    merged = self.pooling.merge(ride, repo, actor.id)
                    repo.add(ride)
                    for sibling in merged:
                        repo.save(sibling)
                    EventRepository(session).append(
                        RideCreatedEvent(
                            ride_id=ride.ride_id,
                            pickup_landmark_id=ride.pickup_landmark_id,
                            city_id=ride.city_id,
                            passenger_id=actor.id,
                            correlation_id=get_current_correlation_id(),
                        )
                    )

            with log_ride_context(ride.ride_id, pool_id=ride.pool_id):
                logger.info(
                    "Ride created: %.2f km, fare %.2f %s",
                    ride.estimated_distance,
                    ride.fare.total_fare,
                    ride.fare.currency,
                )
                if merged:
                    logger.info(
                        "Rides pooled: %s",
                        ", ".join(r.ride_id for r in merged),
                    )

        self.metrics.ride_created()
        self.metrics.rides_pooled(len(merged))
        self._project()
        return ride

    def cancel(self, actor: Actor, ride_id: str, reason: str | None) -> Ride:
        """Cancel a ride, or for its assigned driver, hand it back to pending."""
        with log_ride_context(ride_id, actor_id=actor.id), self._operation("cancel"):
            if not reason or not reason.strip():
                raise ValidationError("Please provide a cancellation reason")

            with self.session_factory() as session, transaction(session):
                repo = RideRepository(session)
                ride = self._load(repo, ride_id)
                released = ride.is_driver(actor.id)
                if released:
                    ride.release_driver(actor.id, reason)
                elif actor.is_admin or ride.is_passenger(actor.id):
                    passenger_id = actor.id if ride.is_passenger(actor.id) else None
                    ride.cancel(actor.id, reason, passenger_id=passenger_id)
                else:
                    raise ForbiddenError("Not authorized to cancel this ride")
                repo.save(ride)

            if released:
                logger.info("Driver released ride: %s", reason)
            else:
                logger.info("Ride cancelled: %s", reason)

        if released:
            self._publish(ride_id, DriverReleasedMessage(ride_id=ride_id, driver_id=actor.id))
        return ride

    def accept(self, actor: Actor, ride_id: str) -> Ride:
        """Assign the driver to the ride and to every pooling ride in its pool."""
        with log_ride_context(ride_id, driver_id=actor.id), self._operation("accept"):
            with self.session_factory() as session, transaction(session):
                driver = UserRepository(session).get(actor.id)
                if actor.role != Role.DRIVER or driver is None or not driver.is_verified_driver:
                    raise ForbiddenError("Only verified drivers can accept rides")

                repo = RideRepository(session)
                ride = self._load(repo, ride_id)
                ride.require_status(RideStatus.PENDING, RideStatus.POOLING, action="accepted")
                if not repo.claim(ride.ride_id, actor.id):
                    if repo.count_active_for_driver(actor.id) > 0:
                        raise ConflictError(
                            "You already have an active ride", {"driver_id": actor.id}
                        )
                    raise ConflictError("Ride was already accepted by another driver")
                ride.assign_driver(actor.id)
                repo.save(ride)

                siblings = []
                for sibling in repo.list_by_pool(
                    ride.pool_id, status=RideStatus.POOLING, exclude_ride_id=ride.ride_id
                ):
                    if repo.claim(sibling.ride_id, actor.id, exclusive=False):
                        sibling.assign_driver(actor.id)
                        repo.save(sibling)
                        siblings.append(sibling)

            with log_context(pool_id=ride.pool_id):
                logger.info("Driver assigned to %d ride(s) in pool", len(siblings) + 1)
        return ride

    def start(self, actor: Actor, ride_id: str) -> Ride:
        with log_ride_context(ride_id, driver_id=actor.id), self._operation("start"):
            with self.session_factory() as session, transaction(session):
                repo = RideRepository(session)
                ride = self._load(repo, ride_id)
                ride.start(actor.id)
                repo.save(ride)
            logger.info("Ride started")
        return ride

    def complete(self, actor: Actor, ride_id: str) -> Ride:
        with log_ride_context(ride_id, driver_id=actor.id), self._operation("complete"):
            with self.session_factory() as session, transaction(session):
                repo = RideRepository(session)
                ride = self._load(repo, ride_id)
                completed = ride.complete(actor.id)
                repo.save(ride)
                EventRepository(session).append(
                    RideCompletedEvent(
                        ride_id=ride.ride_id,
                        driver_id=actor.id,
                        city_id=ride.city_id,
                        distance_km=ride.estimated_distance,
                        total_fare=ride.fare.total_fare,
                        completed_passenger_ids=[p.user_id for p in completed],
                        correlation_id=get_current_correlation_id(),
                    )
                )
            logger.info("Ride completed with %d passenger(s)", len(completed))
        self._project()
        return ride

    def rate(
        self, actor: Actor, ride_id: str, rating: int, comment: str | None = None
    ) -> PassengerRating:
        with log_ride_context(ride_id, passenger_id=actor.id), self._operation("rate"):
            with self.session_factory() as session, transaction(session):
                repo = RideRepository(session)
                ride = self._load(repo, ride_id)
                stored = ride.rate(actor.id, rating, comment)
                repo.save(ride)
                if ride.driver_id is not None:
                    EventRepository(session).append(
                        RideRatedEvent(
                            ride_id=ride.ride_id,
                            driver_id=ride.driver_id,
                            passenger_id=actor.id,
                            rating=rating,
                            correlation_id=get_current_correlation_id(),
                        )
                    )
            logger.info("Ride rated %d", rating)
        self._project()
        return stored

    def add_message(self, actor: Actor, ride_id: str, text: str) -> RideMessage:
        with log_ride_context(ride_id, actor_id=actor.id), self._operation("message"):
            with self.session_factory() as session, transaction(session):
                repo = RideRepository(session)
                ride = self._load(repo, ride_id)
                if not ride.can_view(actor):
                    raise ForbiddenError("Not authorized to message on this ride")
                message = ride.add_message(actor.id, text)
                repo.save(ride)

        self._publish(
            ride_id,
            ChatMessage(
                ride_id=ride_id,
                sender_id=message.sender_id,
                text=message.text,
                timestamp=message.timestamp.isoformat(),
            ),
        )
        return message

    def update_driver_location(
        self, actor: Actor, ride_id: str, lat: float, lng: float
    ) -> DriverLocation:
        """Last write wins; no ordering beyond the most recent update."""
        with log_ride_context(ride_id, driver_id=actor.id), self._operation("location"):
            with self.session_factory() as session, transaction(session):
                repo = RideRepository(session)
                ride = self._load(repo, ride_id)
                location = ride.update_driver_location(actor.id, lat, lng)
                repo.save(ride)

        self._publish(
            ride_id,
            DriverLocationMessage(
                ride_id=ride_id,
                driver_id=actor.id,
                location=(location.latitude, location.longitude),
                timestamp=location.last_updated.isoformat(),
            ),
        )
        return location

    # --- Helpers ---

    def _load(self, repo: RideRepository, ride_id: str) -> Ride:
        ride = repo.get(ride_id)
        if ride is None:
            raise NotFoundError("Ride not found", {"ride_id": ride_id})
        return ride

    @contextmanager
    def _operation(self, action: str) -> Iterator[None]:
        try:
            yield
        except RidePoolError as e:
            self.metrics.rejection(e.code)
            logger.info("Ride %s rejected (%s): %s", action, e.code, e.message)
            raise
        self.metrics.transition(action)

    def _project(self) -> None:
        try:
            self.projector.apply_pending()
        except Exception:
            logger.exception("Stats projection failed; events stay pending for replay")

    def _publish(self, ride_id: str, message: RideChannelMessage) -> None:
        if self.publisher is None:
            return
        self.publisher.publish_to_ride(ride_id, message)
