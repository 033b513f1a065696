"""Tests for Redis ride channel fan-out into WebSocket rooms."""

import json
from unittest.mock import AsyncMock, Mock

import pytest

from ridepool.api.redis_subscriber import RedisSubscriber


@pytest.fixture
def connection_manager():
    manager = Mock()
    manager.broadcast_to_room = AsyncMock(return_value=1)
    return manager


@pytest.fixture
def subscriber(connection_manager):
    return RedisSubscriber(redis_client=Mock(), connection_manager=connection_manager)


def pmessage(channel, data):
    return {
        "type": "pmessage",
        "pattern": "ride:*",
        "channel": channel,
        "data": json.dumps(data) if not isinstance(data, str) else data,
    }


@pytest.mark.unit
class TestTransformEvent:
    def test_driver_location(self, subscriber: RedisSubscriber):
        data = {
            "type": "driver_location",
            "ride_id": "r1",
            "driver_id": "d1",
            "location": [12.97, 77.6],
            "timestamp": "2026-03-02T09:00:00",
        }

        result = subscriber._transform_event("ride:r1", data)

        assert result == ("r1", {"type": "driver_location", "data": data})

    def test_unknown_type_dropped(self, subscriber: RedisSubscriber):
        assert subscriber._transform_event("ride:r1", {"type": "surge_update"}) is None

    def test_non_ride_channel_dropped(self, subscriber: RedisSubscriber):
        assert subscriber._transform_event("trips", {"type": "chat_message"}) is None


@pytest.mark.unit
class TestHandleMessage:
    async def test_forwards_to_ride_room(self, subscriber, connection_manager):
        data = {"type": "chat_message", "ride_id": "r1", "sender_id": "p1", "text": "Hi"}

        await subscriber.handle_message(pmessage("ride:r1", data))

        connection_manager.broadcast_to_room.assert_awaited_once_with(
            "r1", {"type": "chat_message", "data": data}
        )

    async def test_bytes_channel(self, subscriber, connection_manager):
        await subscriber.handle_message(pmessage(b"ride:r2", {"type": "chat_message"}))

        assert connection_manager.broadcast_to_room.await_args.args[0] == "r2"

    async def test_ignores_subscribe_confirmations(self, subscriber, connection_manager):
        await subscriber.handle_message({"type": "psubscribe", "channel": "ride:*", "data": 1})

        connection_manager.broadcast_to_room.assert_not_awaited()

    async def test_invalid_json_logged(self, subscriber, connection_manager, caplog):
        await subscriber.handle_message(pmessage("ride:r1", "{not json"))

        connection_manager.broadcast_to_room.assert_not_awaited()
        assert "Invalid JSON" in caplog.text

    async def test_driver_release_evicts_before_broadcast(self, subscriber, connection_manager):
        calls = []
        connection_manager.evict.side_effect = lambda *args: calls.append(("evict", args))
        connection_manager.broadcast_to_room.side_effect = lambda *args: calls.append(
            ("broadcast", args[0])
        )
        data = {"type": "driver_released", "ride_id": "r1", "driver_id": "d1"}

        await subscriber.handle_message(pmessage("ride:r1", data))

        assert calls == [("evict", ("r1", "d1")), ("broadcast", "r1")]

    async def test_chat_does_not_evict(self, subscriber, connection_manager):
        data = {"type": "chat_message", "ride_id": "r1", "sender_id": "d1", "text": "Hi"}

        await subscriber.handle_message(pmessage("ride:r1", data))

        connection_manager.evict.assert_not_called()
