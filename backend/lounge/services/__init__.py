# backend/lounge/services/__init__.py
"""
Service layer for the lounge booking engine.

Services hold the business rules and call the synchronous repositories
through asyncio.to_thread.
"""

from .availability_service import AvailabilityService
from .base import BaseService
from .booking_lookup_service import BookingLookupService
from .booking_monitor import BookingMonitor
from .booking_service import BookingService
from .booking_status import BookingStatusService, StatusMutation
from .cache_service import CacheNamespace, CacheService, build_cache_service
from .controller_allocator import ControllerAllocator
from .customer_service import CustomerService
from .today_bookings_service import TodayBookingsService

__all__ = [
    "AvailabilityService",
    "BaseService",
    "BookingLookupService",
    "BookingMonitor",
    "BookingService",
    "BookingStatusService",
    "CacheNamespace",
    "CacheService",
    "ControllerAllocator",
    "CustomerService",
    "StatusMutation",
    "TodayBookingsService",
    "build_cache_service",
]
