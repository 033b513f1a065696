from typing import Annotated

from fastapi import APIRouter, Depends, Query

from ridepool.api.auth import RideServiceDep, verify_api_key
from ridepool.api.models.landmarks import NearbyLandmarkResponse

router = APIRouter(dependencies=[Depends(verify_api_key)])


@router.get("/nearby", response_model=list[NearbyLandmarkResponse])
def nearby_landmarks(
    service: RideServiceDep,
    lat: Annotated[float, Query(ge=-90, le=90)],
    lng: Annotated[float, Query(ge=-180, le=180)],
    radius_km: Annotated[float, Query(gt=0, le=50)] = 5.0,
) -> list[NearbyLandmarkResponse]:
    """Active pickup landmarks within ``radius_km``, nearest first."""
    return [
        NearbyLandmarkResponse(
            id=landmark.id,
            city_id=landmark.city_id,
            name=landmark.name,
            address=landmark.address,
            latitude=landmark.latitude,
            longitude=landmark.longitude,
            distance_km=round(km, 3),
        )
        for landmark, km in service.nearby_landmarks(lat, lng, radius_km)
    ]
