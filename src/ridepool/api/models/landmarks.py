from pydantic import BaseModel


class NearbyLandmarkResponse(BaseModel):
    id: str
    city_id: str
    name: str
    address: str
    latitude: float
    longitude: float
    distance_km: float
