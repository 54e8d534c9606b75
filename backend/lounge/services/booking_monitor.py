# backend/lounge/services/booking_monitor.py
"""
Periodic work for the staff desk.

Two asyncio loops:
- refresh: completes overdue bookings and reloads today's bookings
- reminders: reports confirmed bookings about to start, once per booking

Both are advisory; a failed tick is logged and the loop carries on.
"""

import asyncio
import contextlib
from datetime import date, datetime
import logging
from typing import Awaitable, Callable, List, Optional, Set, Union

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import DomainException
from ..core.timezone_utils import get_lounge_now
from ..schemas.booking import UpcomingReminder
from .booking_status import BookingStatusService
from .cache_service import CacheService
from .today_bookings_service import TodayBookingsService

logger = logging.getLogger(__name__)

ReminderCallback = Callable[[UpcomingReminder], Union[None, Awaitable[None]]]


class BookingMonitor:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        cache: CacheService,
        on_reminder: Optional[ReminderCallback] = None,
        now_provider: Callable[[], datetime] = get_lounge_now,
        refresh_seconds: Optional[int] = None,
        reminder_seconds: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.cache = cache
        self.on_reminder = on_reminder or _log_reminder
        self._now = now_provider
        self.refresh_seconds = refresh_seconds or settings.today_bookings_refresh_seconds
        self.reminder_seconds = reminder_seconds or settings.reminder_check_seconds

        self._reminded: Set[str] = set()
        self._reminded_for: Optional[date] = None
        self._tasks: List[asyncio.Task] = []

    @property
    def is_running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def refresh_once(self) -> int:
        """Complete overdue bookings and reload today's list. Returns bookings completed."""
        now = self._now()
        with contextlib.closing(self.session_factory()) as db:
            completed = await BookingStatusService(db, self.cache, lambda: now).sweep(now)
            await TodayBookingsService(db, self.cache, lambda: now).get_today(
                force_refresh=True
            )
        return completed

    async def check_reminders_once(self) -> List[UpcomingReminder]:
        """Deliver reminders for bookings not reminded yet; returns what was delivered."""
        now = self._now()
        if self._reminded_for != now.date():
            self._reminded.clear()
            self._reminded_for = now.date()

        with contextlib.closing(self.session_factory()) as db:
            reminders = await TodayBookingsService(db, self.cache, lambda: now).upcoming_reminders(
                now
            )

        delivered = []
        for reminder in reminders:
            if reminder.booking_id in self._reminded:
                continue
            self._reminded.add(reminder.booking_id)
            result = self.on_reminder(reminder)
            if asyncio.iscoroutine(result):
                await result
            delivered.append(reminder)
        return delivered

    async def _run_every(self, interval: int, tick: Callable[[], Awaitable[object]], name: str):
        while True:
            try:
                await tick()
            except DomainException as e:
                logger.error(f"Booking monitor {name} tick failed: {e.message}")
            except Exception as e:
                logger.error(f"Booking monitor {name} tick failed: {e}")
            await asyncio.sleep(interval)

    def start(self) -> None:
        if self.is_running:
            return
        self._tasks = [
            asyncio.create_task(
                self._run_every(self.refresh_seconds, self.refresh_once, "refresh"),
                name="booking-monitor-refresh",
            ),
            asyncio.create_task(
                self._run_every(self.reminder_seconds, self.check_reminders_once, "reminders"),
                name="booking-monitor-reminders",
            ),
        ]
        logger.info(
            f"Booking monitor started (refresh every {self.refresh_seconds}s, "
            f"reminders every {self.reminder_seconds}s)"
        )

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []
        logger.info("Booking monitor stopped")


def _log_reminder(reminder: UpcomingReminder) -> None:
    logger.info(reminder.message)
