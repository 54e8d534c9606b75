# backend/lounge/models/__init__.py
"""ORM models for the lounge booking store."""

from .booking import Booking, BookingView
from .customer import Customer
from .station import Station

__all__ = ["Booking", "BookingView", "Customer", "Station"]
