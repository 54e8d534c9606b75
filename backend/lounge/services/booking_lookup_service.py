# backend/lounge/services/booking_lookup_service.py
"""
Check-my-booking lookups and booking statistics.

Lookups are read-only: they report the effective status without writing
it back. Callers that want completion persisted run BookingStatusService.
"""

from datetime import datetime
import logging
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.enums import BookingStatus, StationType
from ..core.exceptions import NotFoundException, RepositoryException, ServiceException
from ..core.timezone_utils import get_lounge_now
from ..models.booking import Booking
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import BookingDetails, BookingStats
from .base import BaseService
from .booking_status import derive_effective_status

logger = logging.getLogger(__name__)


def to_booking_details(
    booking: Booking, now: datetime, access_code: Optional[str] = None
) -> BookingDetails:
    station = booking.station
    customer = booking.customer
    return BookingDetails(
        id=booking.id,
        booking_group_id=booking.booking_group_id,
        booking_date=booking.booking_date,
        start_time=booking.start_time,
        end_time=booking.end_time,
        duration_minutes=booking.duration_minutes,
        status=BookingStatus(booking.status),
        effective_status=derive_effective_status(booking, now),
        station_id=booking.station_id,
        station_name=station.name if station else None,
        station_type=StationType(station.station_type) if station else None,
        customer_id=booking.customer_id,
        customer_name=customer.name if customer else None,
        customer_phone=customer.phone if customer else None,
        coupon_code=booking.coupon_code,
        discount_percentage=booking.discount_percentage,
        original_price=booking.original_price,
        final_price=booking.final_price,
        access_code=access_code,
        status_updated_at=booking.status_updated_at,
        status_updated_by=booking.status_updated_by,
    )


def normalize_access_code(code: str) -> str:
    return code.strip().upper()


class BookingLookupService(BaseService):
    def __init__(self, db: Session, now_provider: Callable[[], datetime] = get_lounge_now):
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.booking_view_repository = RepositoryFactory.create_booking_view_repository(db)
        self.customer_repository = RepositoryFactory.create_customer_repository(db)
        self._now = now_provider

    @BaseService.measure_operation("lookup_by_code")
    async def find_by_access_code(self, code: str) -> BookingDetails:
        """
        Booking an access code points at, recording the access.

        Raises:
            NotFoundException: no booking carries this code
        """
        normalized = normalize_access_code(code or "")
        if not normalized:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")

        now = self._now()
        try:
            details = await self.run_sync(self._load_by_code, normalized, now)
        except RepositoryException as e:
            self.logger.error(f"Access code lookup failed: {e}")
            raise ServiceException("Failed to look up booking") from e

        if details is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        return details

    def _load_by_code(self, code: str, now: datetime) -> Optional[BookingDetails]:
        view = self.booking_view_repository.get_by_access_code(code)
        if view is None:
            return None
        details = to_booking_details(view.booking, now, access_code=view.access_code)
        self.booking_view_repository.touch(view.booking_id, now)
        return details

    @BaseService.measure_operation("lookup_by_phone")
    async def find_by_phone(self, phone: str) -> List[BookingDetails]:
        """All bookings of the customer with this phone, most recent first."""
        phone = (phone or "").strip()
        if not phone:
            return []
        now = self._now()
        try:
            return await self.run_sync(self._load_by_phone, phone, now)
        except RepositoryException as e:
            self.logger.error(f"Phone lookup failed: {e}")
            raise ServiceException("Failed to look up bookings") from e

    def _load_by_phone(self, phone: str, now: datetime) -> List[BookingDetails]:
        customer = self.customer_repository.find_by_phone(phone)
        if customer is None:
            return []
        codes: Dict[str, Optional[str]] = {}
        results = []
        for booking in self.booking_repository.get_for_customer(customer.id):
            group = booking.booking_group_id
            if group not in codes:
                codes[group] = self.booking_view_repository.get_access_code_for_booking(booking.id)
            results.append(to_booking_details(booking, now, access_code=codes[group]))
        return results

    @BaseService.measure_operation("booking_stats")
    async def stats(self, now: Optional[datetime] = None) -> BookingStats:
        """Totals across all bookings."""
        now = now or self._now()
        try:
            bookings = await self.run_sync(self._load_all, now)
        except RepositoryException as e:
            self.logger.error(f"Failed to load bookings for stats: {e}")
            raise ServiceException("Failed to load booking statistics") from e

        stats = BookingStats(total=len(bookings))
        today = now.date()
        for booking in bookings:
            if booking.effective_status == BookingStatus.CONFIRMED and (
                datetime.combine(booking.booking_date, booking.start_time) > now
            ):
                stats.upcoming += 1
            if booking.booking_date == today:
                stats.today += 1
            if booking.station_type == StationType.PS5:
                stats.ps5 += 1
            elif booking.station_type == StationType.POOL:
                stats.pool += 1
        return stats

    def _load_all(self, now: datetime) -> List[BookingDetails]:
        return [to_booking_details(b, now) for b in self.booking_repository.get_all_with_details()]
