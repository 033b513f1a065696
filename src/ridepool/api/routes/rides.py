from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from ridepool.api.auth import ActorDep, RideServiceDep, verify_api_key
from ridepool.api.models.rides import (
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
from ridepool.api.rate_limit import limiter
from ridepool.ride import DriverLocation, PassengerRating, Ride, RideMessage, RideStatus
from ridepool.rides import MAX_PAGE_SIZE

router = APIRouter(dependencies=[Depends(verify_api_key)])


@router.post("", response_model=Ride, status_code=201)
@limiter.limit("30/minute")
def create_ride(
    request: Request,
    body: CreateRideRequest,
    service: RideServiceDep,
    actor: ActorDep,
) -> Ride:
    """Book a ride from a pickup landmark. The ride may be pooled immediately."""
    return service.create(
        actor,
        pickup_landmark_id=body.pickup_landmark_id,
        destination=body.destination,
        scheduled_time=body.scheduled_time,
        passenger_count=body.passenger_count,
    )


@router.get("/mine", response_model=list[Ride])
def list_my_rides(service: RideServiceDep, actor: ActorDep) -> list[Ride]:
    """Rides the caller drives (drivers) or rides in (everyone else), newest first."""
    return service.list_for_actor(actor)


@router.get("", response_model=RideListResponse)
def list_rides(
    service: RideServiceDep,
    actor: ActorDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = 10,
    sort: RideSort = "-created_at",
    status: RideStatus | None = None,
    city_id: str | None = None,
    driver_id: str | None = None,
    pool_id: str | None = None,
) -> RideListResponse:
    """Admin listing with pagination, sorting and filters."""
    result = service.list_all(
        actor,
        page=page,
        limit=limit,
        sort=sort,
        status=status,
        city_id=city_id,
        driver_id=driver_id,
        pool_id=pool_id,
    )
    return RideListResponse(
        count=len(result.rides),
        total=result.total,
        pagination=Pagination(
            next=PageRef(page=page + 1, limit=limit) if result.has_next else None,
            prev=PageRef(page=page - 1, limit=limit) if result.has_prev else None,
        ),
        data=result.rides,
    )


@router.get("/{ride_id}", response_model=Ride)
def get_ride(ride_id: str, service: RideServiceDep, actor: ActorDep) -> Ride:
    return service.get_ride(actor, ride_id)


@router.put("/{ride_id}/cancel", response_model=Ride)
def cancel_ride(
    ride_id: str,
    body: CancelRideRequest,
    service: RideServiceDep,
    actor: ActorDep,
) -> Ride:
    """Cancel a ride. The assigned driver cancelling returns the ride to pending."""
    return service.cancel(actor, ride_id, body.reason)


@router.put("/{ride_id}/accept", response_model=Ride)
def accept_ride(ride_id: str, service: RideServiceDep, actor: ActorDep) -> Ride:
    return service.accept(actor, ride_id)


@router.put("/{ride_id}/start", response_model=Ride)
def start_ride(ride_id: str, service: RideServiceDep, actor: ActorDep) -> Ride:
    return service.start(actor, ride_id)


@router.put("/{ride_id}/complete", response_model=Ride)
def complete_ride(ride_id: str, service: RideServiceDep, actor: ActorDep) -> Ride:
    return service.complete(actor, ride_id)


@router.put("/{ride_id}/rate", response_model=PassengerRating)
def rate_ride(
    ride_id: str,
    body: RateRideRequest,
    service: RideServiceDep,
    actor: ActorDep,
) -> PassengerRating:
    return service.rate(actor, ride_id, body.rating, body.comment)


@router.post("/{ride_id}/messages", response_model=RideMessage, status_code=201)
def add_message(
    ride_id: str,
    body: MessageRequest,
    service: RideServiceDep,
    actor: ActorDep,
) -> RideMessage:
    return service.add_message(actor, ride_id, body.text)


@router.put("/{ride_id}/location", response_model=DriverLocation)
@limiter.limit("120/minute")
def update_location(
    request: Request,
    ride_id: str,
    body: LocationRequest,
    service: RideServiceDep,
    actor: ActorDep,
) -> DriverLocation:
    return service.update_driver_location(actor, ride_id, body.lat, body.lng)
