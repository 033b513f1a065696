"""Projects ride ledger events onto user, city and landmark counters."""

import logging
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from ridepool.db.repositories import CityRepository, EventRepository, UserRepository
from ridepool.db.transaction import transaction
from ridepool.events import (
    LedgerEvent,
    RideCompletedEvent,
    RideCreatedEvent,
    RideRatedEvent,
)

logger = logging.getLogger(__name__)


class StatsProjector:
    """Applies pending ledger events exactly once.

    Each event is claimed by stamping ``applied_at`` and projected in the
    same transaction, so a crash or a concurrent projector never applies an
    event twice and an unapplied event is picked up on the next run.
    """

    def __init__(self, session_factory: sessionmaker[Any], batch_size: int = 100):
        self.session_factory = session_factory
        self.batch_size = batch_size

    def apply_pending(self) -> int:
        """Apply every pending event in ledger order. Returns the number applied."""
        applied = 0
        with self.session_factory() as session:
            while True:
                with transaction(session):
                    batch = EventRepository(session).list_pending(self.batch_size)
                if not batch:
                    break

                for pending in batch:
                    with transaction(session):
                        if not EventRepository(session).mark_applied(pending.id):
                            continue
                        self._project(session, pending.event)
                    applied += 1

        if applied:
            logger.debug("Applied %d ride ledger events", applied)
        return applied

    def _project(self, session: Session, event: LedgerEvent) -> None:
        if isinstance(event, RideCreatedEvent):
            self._on_created(session, event)
        elif isinstance(event, RideCompletedEvent):
            self._on_completed(session, event)
        elif isinstance(event, RideRatedEvent):
            self._on_rated(session, event)

    def _on_created(self, session: Session, event: RideCreatedEvent) -> None:
        if not CityRepository(session).increment_pickup_count(event.pickup_landmark_id):
            logger.warning(
                "Landmark %s missing for ride %s", event.pickup_landmark_id, event.ride_id
            )

    def _on_completed(self, session: Session, event: RideCompletedEvent) -> None:
        users = UserRepository(session)
        users.record_completed_ride(
            event.driver_id, distance_km=event.distance_km, earnings=event.total_fare
        )
        for passenger_id in event.completed_passenger_ids:
            users.record_completed_ride(passenger_id, distance_km=event.distance_km)
        if not CityRepository(session).record_completed_ride(event.city_id, event.total_fare):
            logger.warning("City %s missing for ride %s", event.city_id, event.ride_id)

    def _on_rated(self, session: Session, event: RideRatedEvent) -> None:
        if not UserRepository(session).record_rating(event.driver_id, event.rating):
            logger.warning("Driver %s missing for ride %s", event.driver_id, event.ride_id)
