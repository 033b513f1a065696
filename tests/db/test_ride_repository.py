"""Tests for ride repository persistence, pool queries and claims."""

from ridepool.db.repositories import RideRepository
from ridepool.db.transaction import transaction
from ridepool.geo import bounding_box
from ridepool.ride import PassengerStatus, RideAction, RideStatus
from tests.factories import TEN_KM_NORTH, later, make_ride, north_of


def store(session_factory, *rides):
    with session_factory() as session, transaction(session):
        repo = RideRepository(session)
        for ride in rides:
            repo.add(ride)


class TestRideRepository:
    def test_add_and_get_preserves_aggregate(self, world, session_factory):
        ride = make_ride(status=RideStatus.COMPLETED)
        ride.rate("p1", 4, "Good")
        store(session_factory, ride)

        with session_factory() as session:
            loaded = RideRepository(session).get(ride.ride_id)

        assert loaded is not None
        assert loaded.status == RideStatus.COMPLETED
        assert loaded.driver_id == "d1"
        assert loaded.destination == ride.destination
        assert loaded.fare == ride.fare
        assert loaded.passengers[0].status == PassengerStatus.COMPLETED
        assert loaded.passengers[0].rating.driver == 4
        assert loaded.passengers[0].rating.comment == "Good"
        assert [entry.action for entry in loaded.logs] == [entry.action for entry in ride.logs]

    def test_get_missing_returns_none(self, session_factory):
        with session_factory() as session:
            assert RideRepository(session).get("nope") is None

    def test_save_appends_logs_and_messages(self, world, session_factory):
        ride = make_ride(status=RideStatus.ASSIGNED)
        store(session_factory, ride)

        with session_factory() as session, transaction(session):
            repo = RideRepository(session)
            loaded = repo.get(ride.ride_id)
            loaded.add_message("p1", "On my way down")
            loaded.start("d1")
            repo.save(loaded)

        with session_factory() as session:
            reloaded = RideRepository(session).get(ride.ride_id)

        assert reloaded.status == RideStatus.STARTED
        assert reloaded.logs[-1].action == RideAction.RIDE_STARTED
        assert len(reloaded.logs) == len(ride.logs) + 1
        assert [m.text for m in reloaded.messages] == ["On my way down"]
        assert reloaded.passengers[0].pickup_time is not None

    def test_pool_candidates_prefilter(self, world, session_factory):
        near = make_ride(passenger_id="p1", dest=TEN_KM_NORTH, scheduled_time=later(10))
        far = make_ride(passenger_id="p2", dest=north_of(*TEN_KM_NORTH, 20.0))
        late = make_ride(passenger_id="p3", dest=TEN_KM_NORTH, scheduled_time=later(45))
        taken = make_ride(passenger_id="p4", dest=TEN_KM_NORTH, status=RideStatus.ASSIGNED)
        store(session_factory, near, far, late, taken)

        with session_factory() as session:
            result = RideRepository(session).list_pool_candidates(
                pickup_landmark_id="lm-1",
                window_start=later(-30),
                window_end=later(30),
                box=bounding_box(*TEN_KM_NORTH, 3.0),
                exclude_pool_id="new-pool",
            )

        assert [r.ride_id for r in result] == [near.ride_id]

    def test_claim_is_compare_and_set(self, world, session_factory):
        ride = make_ride()
        store(session_factory, ride)

        with session_factory() as session, transaction(session):
            assert RideRepository(session).claim(ride.ride_id, "d1") is True
        with session_factory() as session, transaction(session):
            assert RideRepository(session).claim(ride.ride_id, "d2") is False

        with session_factory() as session:
            loaded = RideRepository(session).get(ride.ride_id)
        assert loaded.driver_id == "d1"
        assert loaded.status == RideStatus.ASSIGNED

    def test_claim_refuses_busy_driver(self, world, session_factory):
        held = make_ride(passenger_id="p1", status=RideStatus.STARTED, driver_id="d1")
        ride = make_ride(passenger_id="p2")
        store(session_factory, held, ride)

        with session_factory() as session, transaction(session):
            assert RideRepository(session).claim(ride.ride_id, "d1") is False
        with session_factory() as session, transaction(session):
            assert RideRepository(session).claim(ride.ride_id, "d1", exclusive=False) is True

    def test_join_pool_only_from_pending(self, world, session_factory):
        ride = make_ride()
        store(session_factory, ride)

        with session_factory() as session, transaction(session):
            assert RideRepository(session).join_pool(ride.ride_id, "pool-a") is True
        with session_factory() as session, transaction(session):
            assert RideRepository(session).join_pool(ride.ride_id, "pool-b") is False

        with session_factory() as session:
            loaded = RideRepository(session).get(ride.ride_id)
        assert loaded.pool_id == "pool-a"
        assert loaded.status == RideStatus.POOLING

    def test_count_active_for_driver(self, world, session_factory):
        store(
            session_factory,
            make_ride(status=RideStatus.ASSIGNED, driver_id="d1"),
            make_ride(status=RideStatus.COMPLETED, driver_id="d1"),
            make_ride(status=RideStatus.STARTED, driver_id="d2"),
        )

        with session_factory() as session:
            repo = RideRepository(session)
            assert repo.count_active_for_driver("d1") == 1
            assert repo.count_active_for_driver("d2") == 1
            assert repo.count_active_for_driver("d3") == 0

    def test_list_by_pool_filters_status(self, world, session_factory):
        first = make_ride(passenger_id="p1", status=RideStatus.POOLING)
        second = make_ride(passenger_id="p2")
        second.mark_pooled(first.pool_id, "p2")
        store(session_factory, first, second)

        with session_factory() as session:
            repo = RideRepository(session)
            siblings = repo.list_by_pool(
                first.pool_id, status=RideStatus.POOLING, exclude_ride_id=first.ride_id
            )

        assert [r.ride_id for r in siblings] == [second.ride_id]

    def test_list_by_passenger_and_driver(self, world, session_factory):
        mine = make_ride(passenger_id="p1", status=RideStatus.ASSIGNED, driver_id="d1")
        other = make_ride(passenger_id="p2")
        store(session_factory, mine, other)

        with session_factory() as session:
            repo = RideRepository(session)
            assert [r.ride_id for r in repo.list_by_passenger("p1")] == [mine.ride_id]
            assert [r.ride_id for r in repo.list_by_driver("d1")] == [mine.ride_id]

    def test_list_rides_paginates_and_filters(self, world, session_factory):
        rides = [make_ride(passenger_id=f"p{i}", scheduled_time=later(i)) for i in range(5)]
        rides.append(make_ride(passenger_id="p9", status=RideStatus.CANCELLED))
        store(session_factory, *rides)

        with session_factory() as session:
            repo = RideRepository(session)
            page, total = repo.list_rides(
                page=2, limit=2, sort="scheduled_time", status=RideStatus.PENDING
            )
            cancelled, cancelled_total = repo.list_rides(status=RideStatus.CANCELLED)

        assert total == 5
        assert [r.passengers[0].user_id for r in page] == ["p2", "p3"]
        assert cancelled_total == 1
        assert cancelled[0].cancellation_reason == "Plans changed"
