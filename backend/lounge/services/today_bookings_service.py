# backend/lounge/services/today_bookings_service.py
"""
Today's bookings for the staff desk.

The list is cached for a short TTL and grouped by start time ('HH:MM').
Reminders are computed from the same list.
"""

from datetime import date, datetime, timedelta
import logging
from typing import Callable, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import BookingStatus
from ..core.exceptions import RepositoryException, ServiceException
from ..core.timezone_utils import get_lounge_now
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import BookingDetails, TodayBookings, UpcomingReminder
from .base import BaseService
from .booking_lookup_service import to_booking_details
from .cache_service import CacheNamespace, CacheService
from .time_slots import format_clock

logger = logging.getLogger(__name__)


def group_by_start_time(bookings: Iterable[BookingDetails]) -> Dict[str, List[BookingDetails]]:
    grouped: Dict[str, List[BookingDetails]] = {}
    for booking in bookings:
        grouped.setdefault(format_clock(booking.start_time), []).append(booking)
    return grouped


def build_today_bookings(bookings: List[BookingDetails]) -> TodayBookings:
    grouped = group_by_start_time(bookings)
    return TodayBookings(bookings=bookings, grouped=grouped, time_keys=sorted(grouped))


def find_upcoming_reminders(
    bookings: Iterable[BookingDetails],
    now: datetime,
    lookahead_minutes: int,
) -> List[UpcomingReminder]:
    """Confirmed bookings starting within the next lookahead_minutes."""
    window = timedelta(minutes=lookahead_minutes)
    reminders = []
    for booking in bookings:
        if booking.booking_date != now.date():
            continue
        if booking.status != BookingStatus.CONFIRMED:
            continue
        starts_at = datetime.combine(booking.booking_date, booking.start_time)
        lead = starts_at - now
        if timedelta(0) < lead <= window:
            reminders.append(
                UpcomingReminder(
                    booking_id=booking.id,
                    customer_name=booking.customer_name or "Customer",
                    station_name=booking.station_name or "a station",
                    start_time=booking.start_time,
                    minutes_until_start=int(lead.total_seconds() // 60),
                )
            )
    return reminders


class TodayBookingsService(BaseService):
    def __init__(
        self,
        db: Session,
        cache: Optional[CacheService] = None,
        now_provider: Callable[[], datetime] = get_lounge_now,
    ):
        super().__init__(db, cache)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self._now = now_provider

    def _cache_key(self, day: date) -> Optional[str]:
        return self.cache.key(CacheNamespace.TODAY_BOOKINGS, day) if self.cache else None

    @BaseService.measure_operation("today_bookings")
    async def get_today(self, force_refresh: bool = False) -> TodayBookings:
        """Today's bookings ordered by start time, grouped by 'HH:MM'."""
        now = self._now()
        cache_key = self._cache_key(now.date())
        if self.cache and cache_key and not force_refresh:
            entry = self.cache.get(cache_key)
            if entry is not None:
                bookings = [BookingDetails.model_validate(item) for item in entry.value]
                return build_today_bookings(bookings)

        try:
            bookings = await self.run_sync(self._load, now)
        except RepositoryException as e:
            self.logger.error(f"Failed to load today's bookings: {e}")
            raise ServiceException("Failed to load today's bookings") from e

        if self.cache and cache_key:
            self.cache.set(
                cache_key,
                [b.model_dump(mode="json") for b in bookings],
                ttl=self.cache.ttl_for(CacheNamespace.TODAY_BOOKINGS),
            )
        return build_today_bookings(bookings)

    def _load(self, now: datetime) -> List[BookingDetails]:
        bookings = self.booking_repository.get_for_date(now.date())
        return [to_booking_details(b, now) for b in bookings]

    async def upcoming_reminders(
        self,
        now: Optional[datetime] = None,
        lookahead_minutes: Optional[int] = None,
    ) -> List[UpcomingReminder]:
        now = now or self._now()
        today = await self.get_today()
        return find_upcoming_reminders(
            today.bookings,
            now,
            lookahead_minutes or settings.reminder_lookahead_minutes,
        )
