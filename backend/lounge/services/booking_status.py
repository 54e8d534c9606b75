# backend/lounge/services/booking_status.py
"""
Booking status lifecycle.

    confirmed -> completed   (system, once the booking has ended)
    confirmed -> cancelled   (customer or staff, before the booking ends)
    confirmed -> no-show     (staff, while the booking is still confirmed)

completed, cancelled and no-show are terminal.

The rules are pure functions over a booking and a clock value; only
BookingStatusService writes, always with a compare-and-set on the
confirmed status so repeated reconciliation is harmless.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
import logging
from typing import Callable, Iterable, List, Optional, Protocol

from sqlalchemy.orm import Session

from ..core.enums import BookingStatus, StatusActor
from ..core.exceptions import (
    InvalidStateTransition,
    NotFoundException,
    RepositoryException,
    ServiceException,
)
from ..core.timezone_utils import get_lounge_now
from ..core.ulid_helper import is_valid_ulid
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .availability_service import invalidate_slots
from .base import BaseService
from .cache_service import CacheNamespace, CacheService

logger = logging.getLogger(__name__)


class BookingLike(Protocol):
    id: str
    booking_date: date
    start_time: time
    end_time: time
    status: str


@dataclass(frozen=True)
class StatusMutation:
    """A status change to persist."""

    booking_id: str
    from_status: BookingStatus
    to_status: BookingStatus
    updated_by: StatusActor
    updated_at: datetime


def booking_end(booking: BookingLike) -> datetime:
    """End of the booking; an end at or before the start belongs to the next day."""
    end_date = booking.booking_date
    if booking.end_time <= booking.start_time:
        end_date = end_date + timedelta(days=1)
    return datetime.combine(end_date, booking.end_time)


def derive_effective_status(booking: BookingLike, now: datetime) -> BookingStatus:
    """Status a reader should see: confirmed bookings past their end read as completed."""
    status = BookingStatus(booking.status)
    if status == BookingStatus.CONFIRMED and now > booking_end(booking):
        return BookingStatus.COMPLETED
    return status


def reconcile_status(booking: BookingLike, now: datetime) -> Optional[StatusMutation]:
    """The completion to persist for booking, if any."""
    if derive_effective_status(booking, now) == BookingStatus(booking.status):
        return None
    return StatusMutation(
        booking_id=booking.id,
        from_status=BookingStatus.CONFIRMED,
        to_status=BookingStatus.COMPLETED,
        updated_by=StatusActor.SYSTEM,
        updated_at=now,
    )


def plan_cancellation(booking: BookingLike, now: datetime, actor: StatusActor) -> StatusMutation:
    """
    Raises:
        InvalidStateTransition: booking is terminal or already over
    """
    effective = derive_effective_status(booking, now)
    if effective.is_terminal and effective != BookingStatus.COMPLETED:
        raise InvalidStateTransition(
            booking.id,
            effective.value,
            BookingStatus.CANCELLED.value,
            f"booking is already {effective.label.lower()}",
        )
    # Cancellation closes at the end time itself, one tick before completion
    if now >= booking_end(booking):
        raise InvalidStateTransition(
            booking.id, effective.value, BookingStatus.CANCELLED.value, "booking has already ended"
        )
    return StatusMutation(
        booking_id=booking.id,
        from_status=BookingStatus.CONFIRMED,
        to_status=BookingStatus.CANCELLED,
        updated_by=StatusActor(actor),
        updated_at=now,
    )


def plan_no_show(booking: BookingLike, now: datetime) -> StatusMutation:
    """
    Raises:
        InvalidStateTransition: booking is no longer effectively confirmed
    """
    effective = derive_effective_status(booking, now)
    if effective.is_terminal:
        raise InvalidStateTransition(
            booking.id,
            effective.value,
            BookingStatus.NO_SHOW.value,
            f"booking is {effective.label.lower()}",
        )
    return StatusMutation(
        booking_id=booking.id,
        from_status=BookingStatus.CONFIRMED,
        to_status=BookingStatus.NO_SHOW,
        updated_by=StatusActor.STAFF,
        updated_at=now,
    )


class BookingStatusService(BaseService):
    """Persists status transitions."""

    def __init__(
        self,
        db: Session,
        cache: Optional[CacheService] = None,
        now_provider: Callable[[], datetime] = get_lounge_now,
    ):
        super().__init__(db, cache)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self._now = now_provider

    def _apply(self, mutation: StatusMutation) -> bool:
        return self.booking_repository.transition_status(
            mutation.booking_id,
            mutation.from_status,
            mutation.to_status,
            mutation.updated_by.value,
            mutation.updated_at,
        )

    def _apply_all(self, mutations: List[StatusMutation]) -> int:
        return sum(1 for mutation in mutations if self._apply(mutation))

    @BaseService.measure_operation("reconcile_bookings")
    async def reconcile_bookings(
        self, bookings: Iterable[BookingLike], now: Optional[datetime] = None
    ) -> int:
        """
        Persist completion for every booking past its end.

        Returns:
            Number of bookings actually updated
        """
        now = now or self._now()
        mutations = [m for m in (reconcile_status(b, now) for b in bookings) if m is not None]
        if not mutations:
            return 0

        try:
            applied = await self.run_sync(self._apply_all, mutations)
        except RepositoryException as e:
            self.logger.error(f"Failed to reconcile booking statuses: {e}")
            raise ServiceException("Failed to update booking statuses") from e

        if applied:
            self.logger.info(f"Completed {applied} bookings")
            for _ in range(applied):
                prometheus_metrics.record_status_transition(
                    BookingStatus.COMPLETED.value, StatusActor.SYSTEM.value
                )
            self._invalidate(None)
        return applied

    @BaseService.measure_operation("sweep_overdue")
    async def sweep(self, now: Optional[datetime] = None) -> int:
        """Complete every confirmed booking whose end has passed."""
        now = now or self._now()
        try:
            overdue = await self.run_sync(self.booking_repository.get_overdue_confirmed, now)
        except RepositoryException as e:
            self.logger.error(f"Failed to load overdue bookings: {e}")
            raise ServiceException("Failed to load overdue bookings") from e
        return await self.reconcile_bookings(overdue, now)

    @BaseService.measure_operation("cancel_booking")
    async def cancel_booking(
        self, booking_id: str, actor: StatusActor, now: Optional[datetime] = None
    ) -> StatusMutation:
        now = now or self._now()
        booking = await self._load(booking_id)
        return await self._transition(booking.booking_date, plan_cancellation(booking, now, actor))

    @BaseService.measure_operation("mark_no_show")
    async def mark_no_show(self, booking_id: str, now: Optional[datetime] = None) -> StatusMutation:
        now = now or self._now()
        booking = await self._load(booking_id)
        return await self._transition(booking.booking_date, plan_no_show(booking, now))

    async def _load(self, booking_id: str):
        if not is_valid_ulid(booking_id):
            raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
        try:
            booking = await self.run_sync(self.booking_repository.get_by_id, booking_id, False)
        except RepositoryException as e:
            self.logger.error(f"Failed to load booking {booking_id}: {e}")
            raise ServiceException("Failed to load booking") from e
        if booking is None:
            raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
        return booking

    async def _transition(self, booking_date: date, mutation: StatusMutation) -> StatusMutation:
        try:
            applied = await self.run_sync(self._apply, mutation)
        except RepositoryException as e:
            self.logger.error(f"Failed to update booking {mutation.booking_id}: {e}")
            raise ServiceException("Failed to update booking status") from e

        if not applied:
            # Someone else moved it off confirmed first
            current = await self.run_sync(self._current_status, mutation.booking_id)
            raise InvalidStateTransition(
                mutation.booking_id,
                current,
                mutation.to_status.value,
                f"booking is already {BookingStatus(current).label.lower()}",
            )

        self.logger.info(
            f"Booking {mutation.booking_id} {mutation.from_status.value} -> "
            f"{mutation.to_status.value} by {mutation.updated_by.value}"
        )
        prometheus_metrics.record_status_transition(
            mutation.to_status.value, mutation.updated_by.value
        )
        self._invalidate(booking_date)
        return mutation

    def _current_status(self, booking_id: str) -> str:
        booking = self.booking_repository.get_by_id(booking_id, load_relationships=False)
        self.db.refresh(booking)
        return booking.status

    def _invalidate(self, booking_date: Optional[date]) -> None:
        if not self.cache:
            return
        if booking_date is not None:
            invalidate_slots(self.cache, booking_date)
        self.cache.delete_namespace(CacheNamespace.TODAY_BOOKINGS)

