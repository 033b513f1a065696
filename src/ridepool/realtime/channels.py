"""Ride-scoped pub/sub channels and message schemas for real-time delivery."""

from typing import Literal

from pydantic import BaseModel

CHANNEL_PREFIX = "ride:"
CHANNEL_PATTERN = f"{CHANNEL_PREFIX}*"


def ride_channel(ride_id: str) -> str:
    return f"{CHANNEL_PREFIX}{ride_id}"


def ride_id_from_channel(channel: str) -> str | None:
    if not channel.startswith(CHANNEL_PREFIX):
        return None
    return channel[len(CHANNEL_PREFIX) :] or None


class DriverLocationMessage(BaseModel):
    """Driver position broadcast to everyone watching a ride."""

    type: Literal["driver_location"] = "driver_location"
    ride_id: str
    driver_id: str
    location: tuple[float, float]  # (lat, lng)
    timestamp: str


class ChatMessage(BaseModel):
    """Chat line broadcast to everyone watching a ride."""

    type: Literal["chat_message"] = "chat_message"
    ride_id: str
    sender_id: str
    text: str
    timestamp: str


class DriverReleasedMessage(BaseModel):
    """The assigned driver backed out; their sockets leave the ride room."""

    type: Literal["driver_released"] = "driver_released"
    ride_id: str
    driver_id: str


RideChannelMessage = DriverLocationMessage | ChatMessage | DriverReleasedMessage
