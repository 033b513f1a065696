"""Ride repository: aggregate persistence, pool queries and driver claims."""

import json
from datetime import datetime

from sqlalchemy import exists, func, select, update
from sqlalchemy.orm import Session, aliased

from ridepool.core.clock import utc_now
from ridepool.geo import BoundingBox
from ridepool.ride import (
    ACTIVE_DRIVER_STATUSES,
    Destination,
    DriverLocation,
    GeoPoint,
    Passenger,
    PassengerRating,
    PassengerStatus,
    RideAction,
    RideFare,
    RideLogEntry,
    RideStatus,
)
from ridepool.ride import Ride as RideDomain
from ridepool.ride import RideMessage as RideMessageDomain

from ..schema import Ride, RideLog, RideMessage, RidePassenger

CLAIMABLE_STATUSES = (RideStatus.PENDING.value, RideStatus.POOLING.value)

SORT_COLUMNS = {
    "created_at": Ride.created_at.asc(),
    "-created_at": Ride.created_at.desc(),
    "scheduled_time": Ride.scheduled_time.asc(),
    "-scheduled_time": Ride.scheduled_time.desc(),
}


class RideRepository:
    """Repository for ride aggregates and their child rows."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, ride: RideDomain) -> None:
        """Insert a new ride with its passengers, logs and messages."""
        row = Ride(ride_id=ride.ride_id, created_at=ride.created_at)
        self._apply(row, ride)
        self.session.add(row)
        self.session.flush()
        self._sync_children(ride)

    def save(self, ride: RideDomain) -> None:
        """Write back a loaded ride. Logs and messages are append-only."""
        row = self.session.get(Ride, ride.ride_id)
        if row is None:
            raise KeyError(ride.ride_id)
        self._apply(row, ride)
        row.updated_at = utc_now()
        self._sync_children(ride)

    def get(self, ride_id: str) -> RideDomain | None:
        """Get ride by ID, returning domain model."""
        row = self.session.get(Ride, ride_id)
        if row is None:
            return None
        return self._to_domain(row)

    def list_pool_candidates(
        self,
        pickup_landmark_id: str,
        window_start: datetime,
        window_end: datetime,
        box: BoundingBox,
        exclude_pool_id: str,
    ) -> list[RideDomain]:
        """Pending rides at a landmark inside a schedule window and destination box.

        The box is a prefilter; callers apply the exact distance check.
        """
        stmt = select(Ride).where(
            Ride.status == RideStatus.PENDING.value,
            Ride.pickup_landmark_id == pickup_landmark_id,
            Ride.pool_id != exclude_pool_id,
            Ride.scheduled_time >= window_start,
            Ride.scheduled_time <= window_end,
            Ride.destination_lat >= box.min_lat,
            Ride.destination_lat <= box.max_lat,
            Ride.destination_lon >= box.min_lon,
            Ride.destination_lon <= box.max_lon,
        )
        result = self.session.execute(stmt)
        return [self._to_domain(r) for r in result.scalars().all()]

    def list_by_pool(
        self,
        pool_id: str,
        status: RideStatus | None = None,
        exclude_ride_id: str | None = None,
    ) -> list[RideDomain]:
        """List rides sharing a pool, oldest first."""
        stmt = select(Ride).where(Ride.pool_id == pool_id)
        if status is not None:
            stmt = stmt.where(Ride.status == status.value)
        if exclude_ride_id is not None:
            stmt = stmt.where(Ride.ride_id != exclude_ride_id)
        stmt = stmt.order_by(Ride.created_at.asc())
        result = self.session.execute(stmt)
        return [self._to_domain(r) for r in result.scalars().all()]

    def claim(self, ride_id: str, driver_id: str, exclusive: bool = True) -> bool:
        """Compare-and-set a pending or pooling ride to assigned.

        With ``exclusive`` the update also requires that the driver holds no
        assigned or started ride, so the check and the write are one statement.
        Pool siblings are claimed with ``exclusive=False`` after the first ride.

        Returns False when another writer moved the ride first or the driver
        is already busy.
        """
        conditions = [Ride.ride_id == ride_id, Ride.status.in_(CLAIMABLE_STATUSES)]
        if exclusive:
            held = aliased(Ride)
            conditions.append(
                ~exists().where(
                    held.driver_id == driver_id,
                    held.status.in_([s.value for s in ACTIVE_DRIVER_STATUSES]),
                )
            )
        stmt = (
            update(Ride)
            .where(*conditions)
            .values(
                status=RideStatus.ASSIGNED.value,
                driver_id=driver_id,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session="fetch")
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1

    def join_pool(self, ride_id: str, pool_id: str) -> bool:
        """Compare-and-set a pending ride into ``pool_id``.

        Returns False when a concurrent booking pooled the ride first.
        """
        stmt = (
            update(Ride)
            .where(Ride.ride_id == ride_id, Ride.status == RideStatus.PENDING.value)
            .values(
                status=RideStatus.POOLING.value,
                pool_id=pool_id,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session="fetch")
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1

    def count_active_for_driver(self, driver_id: str) -> int:
        """Count rides the driver holds in assigned or started status."""
        stmt = (
            select(func.count())
            .select_from(Ride)
            .where(
                Ride.driver_id == driver_id,
                Ride.status.in_([s.value for s in ACTIVE_DRIVER_STATUSES]),
            )
        )
        return self.session.execute(stmt).scalar() or 0

    def list_by_passenger(self, user_id: str) -> list[RideDomain]:
        """List rides where the user holds a seat, newest first."""
        ride_ids = select(RidePassenger.ride_id).where(RidePassenger.user_id == user_id)
        stmt = select(Ride).where(Ride.ride_id.in_(ride_ids)).order_by(Ride.created_at.desc())
        result = self.session.execute(stmt)
        return [self._to_domain(r) for r in result.scalars().all()]

    def list_by_driver(self, driver_id: str) -> list[RideDomain]:
        """List rides by driver ID, newest first."""
        stmt = select(Ride).where(Ride.driver_id == driver_id).order_by(Ride.created_at.desc())
        result = self.session.execute(stmt)
        return [self._to_domain(r) for r in result.scalars().all()]

    def list_rides(
        self,
        page: int = 1,
        limit: int = 10,
        sort: str = "-created_at",
        status: RideStatus | None = None,
        city_id: str | None = None,
        driver_id: str | None = None,
        pool_id: str | None = None,
    ) -> tuple[list[RideDomain], int]:
        """Paginated, filtered listing. Returns the page and the total match count."""
        conditions = []
        if status is not None:
            conditions.append(Ride.status == status.value)
        if city_id is not None:
            conditions.append(Ride.city_id == city_id)
        if driver_id is not None:
            conditions.append(Ride.driver_id == driver_id)
        if pool_id is not None:
            conditions.append(Ride.pool_id == pool_id)

        total_stmt = select(func.count()).select_from(Ride).where(*conditions)
        total = self.session.execute(total_stmt).scalar() or 0

        stmt = (
            select(Ride)
            .where(*conditions)
            .order_by(SORT_COLUMNS[sort])
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = self.session.execute(stmt)
        return [self._to_domain(r) for r in result.scalars().all()], total

    def _apply(self, row: Ride, ride: RideDomain) -> None:
        """Copy aggregate fields onto the ORM row."""
        location = ride.destination.location
        row.pickup_landmark_id = ride.pickup_landmark_id
        row.city_id = ride.city_id
        row.destination_address = ride.destination.address
        row.destination_lat = location.latitude
        row.destination_lon = location.longitude
        row.scheduled_time = ride.scheduled_time
        row.estimated_distance = ride.estimated_distance
        row.estimated_duration = ride.estimated_duration
        row.pool_id = ride.pool_id
        row.driver_id = ride.driver_id
        row.status = ride.status.value
        row.base_fare = ride.fare.base_fare
        row.distance_fare = ride.fare.distance_fare
        row.total_fare = ride.fare.total_fare
        row.discount = ride.fare.discount
        row.currency = ride.fare.currency
        row.route_json = json.dumps(ride.route) if ride.route is not None else None
        row.started_at = ride.started_at
        row.completed_at = ride.completed_at
        row.cancellation_reason = ride.cancellation_reason
        if ride.driver_location is not None:
            row.driver_lat = ride.driver_location.latitude
            row.driver_lon = ride.driver_location.longitude
            row.driver_location_updated_at = ride.driver_location.last_updated
        else:
            row.driver_lat = None
            row.driver_lon = None
            row.driver_location_updated_at = None

    def _sync_children(self, ride: RideDomain) -> None:
        for position, passenger in enumerate(ride.passengers):
            self.session.merge(
                RidePassenger(
                    ride_id=ride.ride_id,
                    position=position,
                    user_id=passenger.user_id,
                    fare=passenger.fare,
                    status=passenger.status.value,
                    pickup_time=passenger.pickup_time,
                    dropoff_time=passenger.dropoff_time,
                    rating=passenger.rating.driver if passenger.rating else None,
                    rating_comment=passenger.rating.comment if passenger.rating else None,
                    rated_at=passenger.rating.created_at if passenger.rating else None,
                )
            )

        stored_logs = self._child_count(RideLog, ride.ride_id)
        for seq, entry in enumerate(ride.logs[stored_logs:], start=stored_logs):
            self.session.add(
                RideLog(
                    ride_id=ride.ride_id,
                    seq=seq,
                    action=entry.action.value,
                    actor_id=entry.actor_id,
                    timestamp=entry.timestamp,
                    details_json=json.dumps(entry.details, default=str),
                )
            )

        stored_messages = self._child_count(RideMessage, ride.ride_id)
        for seq, message in enumerate(ride.messages[stored_messages:], start=stored_messages):
            self.session.add(
                RideMessage(
                    ride_id=ride.ride_id,
                    seq=seq,
                    sender_id=message.sender_id,
                    text=message.text,
                    timestamp=message.timestamp,
                    is_read=message.is_read,
                )
            )

    def _child_count(self, model: type[RideLog] | type[RideMessage], ride_id: str) -> int:
        stmt = select(func.count()).select_from(model).where(model.ride_id == ride_id)
        return self.session.execute(stmt).scalar() or 0

    def _to_domain(self, row: Ride) -> RideDomain:
        """Convert ORM rows to the ride aggregate."""
        passengers = self.session.execute(
            select(RidePassenger)
            .where(RidePassenger.ride_id == row.ride_id)
            .order_by(RidePassenger.position)
        ).scalars()
        logs = self.session.execute(
            select(RideLog).where(RideLog.ride_id == row.ride_id).order_by(RideLog.seq)
        ).scalars()
        messages = self.session.execute(
            select(RideMessage).where(RideMessage.ride_id == row.ride_id).order_by(RideMessage.seq)
        ).scalars()

        driver_location = None
        if (
            row.driver_lat is not None
            and row.driver_lon is not None
            and row.driver_location_updated_at is not None
        ):
            driver_location = DriverLocation(
                coordinates=(row.driver_lon, row.driver_lat),
                last_updated=row.driver_location_updated_at,
            )

        return RideDomain(
            ride_id=row.ride_id,
            pickup_landmark_id=row.pickup_landmark_id,
            city_id=row.city_id,
            destination=Destination(
                address=row.destination_address,
                location=GeoPoint(coordinates=(row.destination_lon, row.destination_lat)),
            ),
            scheduled_time=row.scheduled_time,
            estimated_distance=row.estimated_distance,
            estimated_duration=row.estimated_duration,
            pool_id=row.pool_id,
            passengers=[
                Passenger(
                    user_id=p.user_id,
                    fare=p.fare,
                    status=PassengerStatus(p.status),
                    pickup_time=p.pickup_time,
                    dropoff_time=p.dropoff_time,
                    rating=(
                        PassengerRating(
                            driver=p.rating,
                            comment=p.rating_comment,
                            created_at=p.rated_at or row.updated_at,
                        )
                        if p.rating is not None
                        else None
                    ),
                )
                for p in passengers
            ],
            driver_id=row.driver_id,
            route=json.loads(row.route_json) if row.route_json else None,
            status=RideStatus(row.status),
            fare=RideFare(
                base_fare=row.base_fare,
                distance_fare=row.distance_fare,
                total_fare=row.total_fare,
                discount=row.discount,
                currency=row.currency,
            ),
            started_at=row.started_at,
            completed_at=row.completed_at,
            cancellation_reason=row.cancellation_reason,
            logs=[
                RideLogEntry(
                    action=RideAction(entry.action),
                    actor_id=entry.actor_id,
                    timestamp=entry.timestamp,
                    details=json.loads(entry.details_json),
                )
                for entry in logs
            ],
            messages=[
                RideMessageDomain(
                    sender_id=m.sender_id,
                    text=m.text,
                    timestamp=m.timestamp,
                    is_read=m.is_read,
                )
                for m in messages
            ],
            driver_location=driver_location,
            created_at=row.created_at,
        )
