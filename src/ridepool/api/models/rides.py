from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from ridepool.ride import Destination, Ride

RideSort = Literal["created_at", "-created_at", "scheduled_time", "-scheduled_time"]


class CreateRideRequest(BaseModel):
    pickup_landmark_id: str = Field(min_length=1)
    destination: Destination
    scheduled_time: datetime
    passenger_count: int = Field(default=1, ge=1, le=8)


class CancelRideRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class RateRideRequest(BaseModel):
    # Range is checked by the ride so the error carries the domain message
    rating: int
    comment: str | None = Field(default=None, max_length=500)


class MessageRequest(BaseModel):
    text: str = Field(max_length=2000)


class LocationRequest(BaseModel):
    lat: float
    lng: float


class PageRef(BaseModel):
    page: int
    limit: int


class Pagination(BaseModel):
    next: PageRef | None = None
    prev: PageRef | None = None


class RideListResponse(BaseModel):
    count: int
    total: int
    pagination: Pagination
    data: list[Ride]
