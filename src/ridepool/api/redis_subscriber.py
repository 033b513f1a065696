"""Redis pub/sub subscriber for ride room fan-out."""

import asyncio
import contextlib
import json
import logging
from typing import Any

import redis.asyncio as redis

from ridepool.realtime import CHANNEL_PATTERN, ride_id_from_channel

logger = logging.getLogger(__name__)

MESSAGE_TYPES = frozenset({"driver_location", "chat_message", "driver_released"})


class RedisSubscriber:
    """Pattern-subscribes to every ride channel and forwards to the ride's room."""

    def __init__(self, redis_client: Any, connection_manager: Any):
        self.redis_client = redis_client
        self.connection_manager = connection_manager
        self.task: asyncio.Task[None] | None = None
        self.reconnect_delay = 5
        self._subscribed = asyncio.Event()

    async def start(self) -> None:
        """Start the subscriber and wait for subscription to be established."""
        self.task = asyncio.create_task(self._subscribe_and_fanout())
        try:
            await asyncio.wait_for(self._subscribed.wait(), timeout=10.0)
            logger.info("Redis subscriber ready - subscribed to %s", CHANNEL_PATTERN)
        except TimeoutError:
            logger.warning("Redis subscription timeout - proceeding anyway")

    async def stop(self) -> None:
        if self.task:
            self.task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self.task

    def _transform_event(self, channel: str, data: dict[str, Any]) -> tuple[str, dict] | None:
        """Map a channel payload to ``(ride_id, websocket message)``."""
        ride_id = ride_id_from_channel(channel)
        message_type = data.get("type")
        if ride_id is None or message_type not in MESSAGE_TYPES:
            return None
        return ride_id, {"type": message_type, "data": data}

    async def handle_message(self, message: dict[str, Any]) -> None:
        if message["type"] != "pmessage":
            return
        channel = message["channel"]
        if isinstance(channel, bytes):
            channel = channel.decode("utf-8")
        try:
            data = json.loads(message["data"])
        except json.JSONDecodeError:
            logger.warning("Invalid JSON from Redis on %s", channel)
            return

        transformed = self._transform_event(channel, data)
        if transformed:
            ride_id, payload = transformed
            if payload["type"] == "driver_released" and data.get("driver_id"):
                self.connection_manager.evict(ride_id, data["driver_id"])
            await self.connection_manager.broadcast_to_room(ride_id, payload)

    async def _subscribe_and_fanout(self) -> None:
        while True:
            try:
                pubsub = self.redis_client.pubsub()
                await pubsub.psubscribe(CHANNEL_PATTERN)
                self._subscribed.set()
                logger.info("Subscribed to Redis pattern %s", CHANNEL_PATTERN)

                async for message in pubsub.listen():
                    try:
                        await self.handle_message(message)
                    except Exception as e:
                        logger.warning("Error broadcasting message: %s", e)

            except redis.ConnectionError:
                logger.error("Redis disconnected, reconnecting in %ss...", self.reconnect_delay)
                await asyncio.sleep(self.reconnect_delay)
            except asyncio.CancelledError:
                break
