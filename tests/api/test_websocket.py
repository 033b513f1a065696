"""WebSocket room tests."""

from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.websockets import WebSocketState
from starlette.websockets import WebSocketDisconnect

from ridepool.api.rate_limit import WebSocketRateLimiter
from ridepool.api.websocket import ConnectionManager, manager
from ridepool.db.repositories import RideRepository
from ridepool.db.transaction import transaction
from tests.factories import make_ride


def ws_headers(user_id: str | None = "p1", key: str = "test-api-key") -> dict[str, str]:
    headers = {"sec-websocket-protocol": f"apikey.{key}"}
    if user_id:
        headers["x-user-id"] = user_id
    return headers


@pytest.fixture
def ride(world, session_factory):
    world.passenger("p1")
    world.passenger("p2")
    ride = make_ride("p1")
    with session_factory() as session, transaction(session):
        RideRepository(session).add(ride)
    return ride


class TestWebSocketAuth:
    def test_invalid_key_rejected(self, test_client, ride):
        with (
            pytest.raises(WebSocketDisconnect),
            test_client.websocket_connect("/ws", headers=ws_headers(key="wrong")),
        ):
            pass

    def test_missing_user_rejected(self, test_client, ride):
        with (
            pytest.raises(WebSocketDisconnect),
            test_client.websocket_connect("/ws", headers=ws_headers(user_id=None)),
        ):
            pass

    def test_unknown_user_rejected(self, test_client, ride):
        with (
            pytest.raises(WebSocketDisconnect),
            test_client.websocket_connect("/ws", headers=ws_headers(user_id="ghost")),
        ):
            pass

    def test_user_id_query_param(self, test_client, ride):
        with test_client.websocket_connect(
            "/ws?user_id=p1", headers=ws_headers(user_id=None)
        ) as websocket:
            websocket.send_json({"type": "join", "ride_id": ride.ride_id})
            assert websocket.receive_json()["type"] == "joined"


class TestRooms:
    def test_join_and_leave(self, test_client, ride):
        with test_client.websocket_connect("/ws", headers=ws_headers()) as websocket:
            websocket.send_json({"type": "join", "ride_id": ride.ride_id})
            assert websocket.receive_json() == {"type": "joined", "ride_id": ride.ride_id}
            assert manager.room_size(ride.ride_id) == 1

            websocket.send_json({"type": "leave", "ride_id": ride.ride_id})
            assert websocket.receive_json() == {"type": "left", "ride_id": ride.ride_id}
            assert manager.room_size(ride.ride_id) == 0

    def test_outsider_cannot_join(self, test_client, ride):
        with test_client.websocket_connect("/ws", headers=ws_headers("p2")) as websocket:
            websocket.send_json({"type": "join", "ride_id": ride.ride_id})
            reply = websocket.receive_json()

        assert reply["type"] == "error"
        assert reply["error"] == "forbidden"

    def test_unknown_ride(self, test_client, ride):
        with test_client.websocket_connect("/ws", headers=ws_headers()) as websocket:
            websocket.send_json({"type": "join", "ride_id": "nope"})
            assert websocket.receive_json()["error"] == "not_found"

    def test_malformed_message(self, test_client, ride):
        with test_client.websocket_connect("/ws", headers=ws_headers()) as websocket:
            websocket.send_json({"type": "subscribe"})
            assert websocket.receive_json()["error"] == "validation_error"

            websocket.send_text("not json")
            assert websocket.receive_json()["detail"] == "Invalid JSON"


@pytest.mark.unit
class TestConnectionManager:
    def _socket(self):
        websocket = Mock()
        websocket.application_state = WebSocketState.CONNECTED
        websocket.send_json = AsyncMock()
        return websocket

    async def test_broadcast_reaches_room_only(self):
        rooms = ConnectionManager()
        inside, outside = self._socket(), self._socket()
        rooms.join(inside, "r1")
        rooms.join(outside, "r2")

        sent = await rooms.broadcast_to_room("r1", {"type": "chat_message"})

        assert sent == 1
        inside.send_json.assert_awaited_once_with({"type": "chat_message"})
        outside.send_json.assert_not_awaited()

    async def test_skips_closed_sockets(self):
        rooms = ConnectionManager()
        closed = self._socket()
        closed.application_state = WebSocketState.DISCONNECTED
        rooms.join(closed, "r1")

        await rooms.broadcast_to_room("r1", {"type": "chat_message"})

        closed.send_json.assert_not_awaited()

    def test_disconnect_leaves_all_rooms(self):
        rooms = ConnectionManager()
        websocket = self._socket()
        rooms.join(websocket, "r1")
        rooms.join(websocket, "r2")

        rooms.disconnect(websocket)

        assert rooms.rooms == {}

    async def test_evict_drops_only_that_users_sockets(self):
        rooms = ConnectionManager()
        driver, passenger = self._socket(), self._socket()
        driver.accept = AsyncMock()
        passenger.accept = AsyncMock()
        await rooms.connect(driver, user_id="d1")
        await rooms.connect(passenger, user_id="p1")
        rooms.join(driver, "r1")
        rooms.join(driver, "r2")
        rooms.join(passenger, "r1")

        assert rooms.evict("r1", "d1") == 1

        await rooms.broadcast_to_room("r1", {"type": "chat_message"})
        driver.send_json.assert_not_awaited()
        passenger.send_json.assert_awaited_once()
        assert rooms.room_size("r2") == 1


@pytest.mark.unit
class TestWebSocketRateLimiter:
    def test_limits_after_max_connections(self):
        limiter = WebSocketRateLimiter(max_connections=2, window_seconds=60)

        assert not limiter.is_limited("user:p1")
        assert not limiter.is_limited("user:p1")
        assert limiter.is_limited("user:p1")
        assert not limiter.is_limited("user:p2")

    def test_reset(self):
        limiter = WebSocketRateLimiter(max_connections=1, window_seconds=60)
        limiter.is_limited("user:p1")

        limiter.reset()

        assert not limiter.is_limited("user:p1")
