"""User repository: profiles and atomic stat counters."""

from sqlalchemy import update
from sqlalchemy.orm import Session

from ridepool.actors import Role, UserProfile

from ..schema import User


class UserRepository:
    def __init__(self, session: Session):
        self.session = session

    def add(self, profile: UserProfile) -> None:
        self.session.add(User(**profile.model_dump(mode="json")))

    def get(self, user_id: str) -> UserProfile | None:
        user = self.session.get(User, user_id)
        if user is None:
            return None
        return self._to_domain(user)

    def record_completed_ride(
        self,
        user_id: str,
        distance_km: float,
        earnings: float = 0.0,
    ) -> int:
        """Atomically increment ride counters. Returns the number of rows updated."""
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(
                rides_completed=User.rides_completed + 1,
                total_distance=User.total_distance + distance_km,
                total_earnings=User.total_earnings + earnings,
            )
        )
        return self.session.execute(stmt).rowcount

    def record_rating(self, user_id: str, rating: int) -> int:
        """Fold a rating into the running average in one UPDATE.

        Both SET expressions read the pre-update row, so the average uses the
        old count.
        """
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(
                rating_average=(User.rating_average * User.rating_count + rating)
                / (User.rating_count + 1),
                rating_count=User.rating_count + 1,
            )
        )
        return self.session.execute(stmt).rowcount

    def _to_domain(self, user: User) -> UserProfile:
        return UserProfile(
            id=user.id,
            name=user.name,
            role=Role(user.role),
            is_verified=user.is_verified,
            is_available=user.is_available,
            rating_average=user.rating_average,
            rating_count=user.rating_count,
            rides_completed=user.rides_completed,
            total_distance=user.total_distance,
            total_earnings=user.total_earnings,
        )
