"""Authenticated actor handed to the ride core by the identity layer."""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class Role(str, Enum):
    PASSENGER = "passenger"
    DRIVER = "driver"
    ADMIN = "admin"


class Actor(BaseModel):
    """Who is performing an operation. The core authorizes, it never authenticates."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class UserProfile(BaseModel):
    """User record as seen by the ride core, including cumulative stats."""

    id: str
    name: str
    role: Role
    is_verified: bool = False
    is_available: bool = True
    rating_average: float = 0.0
    rating_count: int = 0
    rides_completed: int = 0
    total_distance: float = 0.0
    total_earnings: float = 0.0

    @property
    def is_verified_driver(self) -> bool:
        return self.role == Role.DRIVER and self.is_verified

    def to_actor(self) -> Actor:
        return Actor(id=self.id, role=self.role)
