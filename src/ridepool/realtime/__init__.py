from .channels import (
    CHANNEL_PATTERN,
    ChatMessage,
    DriverLocationMessage,
    DriverReleasedMessage,
    RideChannelMessage,
    ride_channel,
    ride_id_from_channel,
)
from .publisher import RedisPublisher

__all__ = [
    "CHANNEL_PATTERN",
    "ChatMessage",
    "DriverLocationMessage",
    "DriverReleasedMessage",
    "RedisPublisher",
    "RideChannelMessage",
    "ride_channel",
    "ride_id_from_channel",
]
