"""Ride lifecycle service."""

from .service import MAX_PAGE_SIZE, RidePage, RideService

__all__ = ["MAX_PAGE_SIZE", "RidePage", "RideService"]
