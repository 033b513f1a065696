import logging
from typing import Any

import redis
from opentelemetry import trace
from redis.exceptions import RedisError

from ridepool.core.correlation import get_current_correlation_id

from .channels import CHANNEL_PREFIX, RideChannelMessage, ride_channel

logger = logging.getLogger(__name__)


_tracer = trace.get_tracer(__name__)


class RedisPublisher:
    """Synchronous Redis publisher for ride-scoped real-time events.

    Delivery is best effort: a failed publish is logged and dropped, never
    raised into the lifecycle operation that produced it.
    """

    def __init__(self, config: dict[str, Any]):
        self.config = config
        self._client = redis.Redis(
            host=config["host"],
            port=config["port"],
            db=config["db"],
            password=config.get("password"),
            decode_responses=True,
        )

    def publish_sync(self, channel: str, message: RideChannelMessage) -> bool:
        """Publish to a ride channel. Returns False if the publish failed."""
        if not channel.startswith(CHANNEL_PREFIX):
            raise ValueError(f"Channel '{channel}' is not a ride channel")

        with _tracer.start_as_current_span("redis.publish") as span:
            span.set_attribute("db.system", "redis")
            span.set_attribute("db.redis.channel", channel)

            correlation_id = get_current_correlation_id()
            if correlation_id:
                span.set_attribute("correlation_id", correlation_id)

            try:
                self._client.publish(channel, message.model_dump_json())
            except RedisError as e:
                span.record_exception(e)
                logger.error("Failed to publish to channel %s: %s", channel, e)
                return False
        return True

    def publish_to_ride(self, ride_id: str, message: RideChannelMessage) -> bool:
        return self.publish_sync(ride_channel(ride_id), message)

    def close(self) -> None:
        self._client.close()
