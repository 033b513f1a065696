from .city_repository import CityRepository
from .event_repository import EventRepository, PendingEvent
from .ride_repository import RideRepository
from .user_repository import UserRepository

__all__ = [
    "CityRepository",
    "EventRepository",
    "PendingEvent",
    "RideRepository",
    "UserRepository",
]
