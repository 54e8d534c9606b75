# backend/lounge/api/dependencies.py
"""
Service layer dependencies for dependency injection.

Each request gets services bound to its own database session; the cache
is shared by the whole process.
"""

from functools import lru_cache
import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..repositories.factory import RepositoryFactory
from ..repositories.station_repository import StationRepository
from ..services.availability_service import AvailabilityService
from ..services.booking_lookup_service import BookingLookupService
from ..services.booking_service import BookingService
from ..services.booking_status import BookingStatusService
from ..services.cache_service import CacheService, build_cache_service
from ..services.controller_allocator import ControllerAllocator
from ..services.today_bookings_service import TodayBookingsService

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_cache_service_singleton() -> CacheService:
    """Get singleton cache service instance."""
    return build_cache_service()


def get_cache_service_dep() -> CacheService:
    """Get cache service instance for dependency injection."""
    return get_cache_service_singleton()


def get_station_repository(db: Session = Depends(get_db)) -> StationRepository:
    return RepositoryFactory.create_station_repository(db)


def get_availability_service(
    db: Session = Depends(get_db), cache: CacheService = Depends(get_cache_service_dep)
) -> AvailabilityService:
    return AvailabilityService(db, cache)


def get_controller_allocator(db: Session = Depends(get_db)) -> ControllerAllocator:
    return ControllerAllocator(db)


def get_booking_service(
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service_dep),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> BookingService:
    return BookingService(db, cache, availability_service=availability_service)


def get_booking_status_service(
    db: Session = Depends(get_db), cache: CacheService = Depends(get_cache_service_dep)
) -> BookingStatusService:
    return BookingStatusService(db, cache)


def get_booking_lookup_service(db: Session = Depends(get_db)) -> BookingLookupService:
    return BookingLookupService(db)


def get_today_bookings_service(
    db: Session = Depends(get_db), cache: CacheService = Depends(get_cache_service_dep)
) -> TodayBookingsService:
    return TodayBookingsService(db, cache)
