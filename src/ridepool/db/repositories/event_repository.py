"""Ride event ledger repository."""

from dataclasses import dataclass

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from ridepool.core.clock import utc_now
from ridepool.events import LedgerEvent, parse_event

from ..schema import RideEvent


@dataclass
class PendingEvent:
    """Ledger row waiting to be projected."""

    id: int
    event: LedgerEvent


class EventRepository:
    def __init__(self, session: Session):
        self.session = session

    def append(self, event: LedgerEvent) -> None:
        self.session.add(
            RideEvent(
                event_id=str(event.event_id),
                event_type=event.event_type,
                ride_id=event.ride_id,
                payload_json=event.model_dump_json(),
            )
        )

    def list_pending(self, limit: int = 100) -> list[PendingEvent]:
        """Unapplied events in insertion order."""
        stmt = (
            select(RideEvent)
            .where(RideEvent.applied_at.is_(None))
            .order_by(RideEvent.id)
            .limit(limit)
        )
        result = self.session.execute(stmt)
        return [
            PendingEvent(id=row.id, event=parse_event(row.event_type, row.payload_json))
            for row in result.scalars().all()
        ]

    def mark_applied(self, row_id: int) -> bool:
        """Stamp an event as applied. False if it was already applied."""
        stmt = (
            update(RideEvent)
            .where(RideEvent.id == row_id, RideEvent.applied_at.is_(None))
            .values(applied_at=utc_now())
        )
        return self.session.execute(stmt).rowcount == 1

    def count_pending(self) -> int:
        stmt = select(func.count()).select_from(RideEvent).where(RideEvent.applied_at.is_(None))
        return self.session.execute(stmt).scalar() or 0

    def list_for_ride(self, ride_id: str) -> list[LedgerEvent]:
        stmt = select(RideEvent).where(RideEvent.ride_id == ride_id).order_by(RideEvent.id)
        result = self.session.execute(stmt)
        return [parse_event(row.event_type, row.payload_json) for row in result.scalars().all()]
