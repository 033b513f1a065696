from .landmarks import NearbyLandmarkResponse
from .rides import (
    CancelRideRequest,
    CreateRideRequest,
    LocationRequest,
    MessageRequest,
    PageRef,
    Pagination,
    RateRideRequest,
    RideListResponse,
    RideSort,
)

__all__ = [
    "CancelRideRequest",
    "CreateRideRequest",
    "LocationRequest",
    "MessageRequest",
    "NearbyLandmarkResponse",
    "PageRef",
    "Pagination",
    "RateRideRequest",
    "RideListResponse",
    "RideSort",
]
