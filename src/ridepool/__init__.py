"""Ride-pooling backend: landmark bookings, opportunistic pooling and fare splitting."""

__version__ = "0.1.0"
