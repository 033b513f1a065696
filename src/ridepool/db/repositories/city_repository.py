"""City and landmark repository."""

import json

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ridepool.geo import bounding_box
from ridepool.places import City as CityDomain
from ridepool.places import Landmark as LandmarkDomain

from ..schema import City, Landmark


class CityRepository:
    """Read access to cities and landmarks plus their stat counters."""

    def __init__(self, session: Session):
        self.session = session

    def add_city(self, city: CityDomain) -> None:
        self.session.add(
            City(
                id=city.id,
                name=city.name,
                boundary_json=json.dumps(city.boundary) if city.boundary else None,
                is_active=city.is_active,
                total_rides=city.total_rides,
                total_revenue=city.total_revenue,
            )
        )

    def add_landmark(self, landmark: LandmarkDomain) -> None:
        self.session.add(Landmark(**landmark.model_dump()))

    def get_city(self, city_id: str) -> CityDomain | None:
        city = self.session.get(City, city_id)
        if city is None:
            return None
        return CityDomain(
            id=city.id,
            name=city.name,
            boundary=json.loads(city.boundary_json) if city.boundary_json else None,
            is_active=city.is_active,
            total_rides=city.total_rides,
            total_revenue=city.total_revenue,
        )

    def get_landmark(self, landmark_id: str) -> LandmarkDomain | None:
        landmark = self.session.get(Landmark, landmark_id)
        if landmark is None:
            return None
        return self._landmark_to_domain(landmark)

    def list_active_landmarks_near(
        self, lat: float, lon: float, radius_km: float
    ) -> list[LandmarkDomain]:
        """Active landmarks inside the bounding box of the radius. Unsorted."""
        box = bounding_box(lat, lon, radius_km)
        stmt = select(Landmark).where(
            Landmark.is_active.is_(True),
            Landmark.latitude.between(box.min_lat, box.max_lat),
            Landmark.longitude.between(box.min_lon, box.max_lon),
        )
        result = self.session.execute(stmt)
        return [self._landmark_to_domain(lm) for lm in result.scalars().all()]

    def increment_pickup_count(self, landmark_id: str) -> int:
        stmt = (
            update(Landmark)
            .where(Landmark.id == landmark_id)
            .values(pickup_count=Landmark.pickup_count + 1)
        )
        return self.session.execute(stmt).rowcount

    def record_completed_ride(self, city_id: str, revenue: float) -> int:
        stmt = (
            update(City)
            .where(City.id == city_id)
            .values(
                total_rides=City.total_rides + 1,
                total_revenue=City.total_revenue + revenue,
            )
        )
        return self.session.execute(stmt).rowcount

    def _landmark_to_domain(self, landmark: Landmark) -> LandmarkDomain:
        return LandmarkDomain(
            id=landmark.id,
            city_id=landmark.city_id,
            name=landmark.name,
            address=landmark.address,
            latitude=landmark.latitude,
            longitude=landmark.longitude,
            is_active=landmark.is_active,
            pickup_count=landmark.pickup_count,
        )
