from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request

from ridepool.actors import Actor
from ridepool.rides import RideService


def verify_api_key(
    request: Request,
    x_api_key: Annotated[str | None, Header()] = None,
) -> str:
    """Validates API key from X-API-Key header."""
    if not x_api_key or x_api_key != request.app.state.settings.api.key:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return x_api_key


def get_ride_service(request: Request) -> RideService:
    return request.app.state.ride_service


RideServiceDep = Annotated[RideService, Depends(get_ride_service)]


def get_current_actor(
    service: RideServiceDep,
    x_user_id: Annotated[str | None, Header()] = None,
) -> Actor:
    """Resolve the calling user from the X-User-Id header.

    Identity is asserted by the API-key holding gateway; the user must exist
    so that the role comes from our own records.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    profile = service.get_actor(x_user_id)
    if profile is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return profile.to_actor()


ActorDep = Annotated[Actor, Depends(get_current_actor)]
