"""City and landmark reference data."""

from pydantic import BaseModel, Field


class City(BaseModel):
    id: str
    name: str
    # Polygon ring as GeoJSON [lon, lat] pairs
    boundary: list[list[float]] | None = None
    is_active: bool = True
    total_rides: int = 0
    total_revenue: float = 0.0


class Landmark(BaseModel):
    id: str
    city_id: str
    name: str
    address: str
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    is_active: bool = True
    pickup_count: int = 0
