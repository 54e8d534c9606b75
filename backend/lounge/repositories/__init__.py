# backend/lounge/repositories/__init__.py
"""
Repository layer for the lounge booking store.

Repositories own all SQLAlchemy access; services never query the session
directly.
"""

from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .booking_view_repository import BookingViewRepository
from .customer_repository import CustomerRepository
from .factory import RepositoryFactory
from .station_repository import StationRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "BookingViewRepository",
    "CustomerRepository",
    "RepositoryFactory",
    "StationRepository",
]
