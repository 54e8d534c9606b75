# backend/lounge/services/booking_service.py
"""
Booking Service for the lounge.

Commits a multi-station booking as one group:
1. Validate the request (no I/O)
2. Resolve or create the customer
3. Price each station
4. Insert every booking in one store transaction, re-checking conflicts
5. Issue an access code for the group
6. Invalidate cached slots and today's bookings
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
import logging
import secrets
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import BookingStatus
from ..core.exceptions import (
    AccessCodeUnavailable,
    BookingInsertFailed,
    BookingValidationError,
    DomainException,
    NoBookingsCreated,
    RepositoryConflict,
    RepositoryException,
    SlotNoLongerAvailable,
)
from ..core.ulid_helper import generate_ulid
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import BookingConfirmation, BookingRequest, TimeSlot
from .availability_service import AvailabilityService
from .base import BaseService
from .cache_service import CacheNamespace, CacheService
from .customer_service import CustomerService

logger = logging.getLogger(__name__)

# No 0/O or 1/I
ACCESS_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
FALLBACK_CODE_LENGTH = 8

CENTS = Decimal("0.01")
HUNDRED = Decimal("100")


def slot_length_minutes(slot: TimeSlot) -> int:
    start = datetime.combine(date.min, slot.start_time)
    end = datetime.combine(date.min, slot.end_time)
    return int((end - start).total_seconds() // 60)


def normalize_discount(discount: Decimal) -> Decimal:
    """Negative discounts count as no discount."""
    return discount if discount > 0 else Decimal("0")


def validate_booking_request(request: BookingRequest) -> None:
    """
    Check every precondition and report all problems together.

    Raises:
        BookingValidationError: one or more fields are missing or invalid
    """
    problems: List[str] = []
    if not request.stations:
        problems.append("stations: select at least one station")
    if request.booking_date is None:
        problems.append("booking_date: required")
    if request.time_slot is None:
        problems.append("time_slot: required")
    if not request.customer.name:
        problems.append("customer.name: required")
    if not request.customer.phone:
        problems.append("customer.phone: required")
    if request.duration_minutes <= 0:
        problems.append("duration_minutes: must be positive")
    elif request.time_slot is not None and slot_length_minutes(request.time_slot) != (
        request.duration_minutes
    ):
        problems.append("duration_minutes: does not match the selected time slot")
    if request.discount_percentage > HUNDRED:
        problems.append("discount_percentage: must be between 0 and 100")

    if problems:
        raise BookingValidationError(problems)


def calculate_prices(
    hourly_rate: Decimal, duration_minutes: int, discount_percentage: Decimal
) -> tuple[Decimal, Decimal]:
    """(original_price, final_price) for one station, rounded to cents."""
    original = (Decimal(hourly_rate) * Decimal(duration_minutes) / Decimal(60)).quantize(
        CENTS, rounding=ROUND_HALF_UP
    )
    discount = normalize_discount(Decimal(discount_percentage))
    final = (original * (Decimal(1) - discount / HUNDRED)).quantize(CENTS, rounding=ROUND_HALF_UP)
    return original, max(final, Decimal("0.00"))


def generate_access_code(length: int) -> str:
    return "".join(secrets.choice(ACCESS_CODE_ALPHABET) for _ in range(length))


def fallback_access_code(booking_id: str) -> str:
    return booking_id[-FALLBACK_CODE_LENGTH:].upper()


class BookingService(BaseService):
    """Creates booking groups."""

    def __init__(
        self,
        db: Session,
        cache: Optional[CacheService] = None,
        customer_service: Optional[CustomerService] = None,
        availability_service: Optional[AvailabilityService] = None,
    ):
        super().__init__(db, cache)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.booking_view_repository = RepositoryFactory.create_booking_view_repository(db)
        self.customer_service = customer_service or CustomerService(db)
        self.availability_service = availability_service or AvailabilityService(db, cache)

    @BaseService.measure_operation("submit_booking")
    async def submit(self, request: BookingRequest) -> BookingConfirmation:
        """
        Create one confirmed booking per selected station.

        Raises:
            BookingValidationError: request incomplete (raised before any I/O)
            CustomerLookupFailed / CustomerCreateFailed: customer step failed
            SlotNoLongerAvailable: a station was booked in the meantime
            BookingInsertFailed / NoBookingsCreated: the insert failed
        """
        try:
            confirmation = await self._submit(request)
        except DomainException as e:
            prometheus_metrics.record_booking_submission(e.code.lower())
            raise
        prometheus_metrics.record_booking_submission("confirmed")
        return confirmation

    async def _submit(self, request: BookingRequest) -> BookingConfirmation:
        validate_booking_request(request)
        booking_date = request.booking_date
        slot = request.time_slot
        assert booking_date is not None and slot is not None

        self.log_operation(
            "submit_booking",
            booking_date=str(booking_date),
            slot=slot.label,
            stations=len(request.stations),
        )

        customer_id = await self.customer_service.resolve_or_create_customer(
            request.customer.phone, request.customer
        )
        booking_group_id = generate_ulid()
        rows = self._build_rows(request, customer_id, booking_group_id)

        booking_ids = await self._insert_group(rows, booking_date)
        access_code = await self._issue_access_code(booking_ids[0], booking_group_id)

        self._invalidate_caches(booking_date)

        total_price = sum((row["final_price"] for row in rows), Decimal("0.00"))
        self.logger.info(
            f"Created booking group {booking_group_id} with {len(booking_ids)} bookings "
            f"for {booking_date} {slot.label}"
        )
        return BookingConfirmation(
            booking_ids=booking_ids,
            booking_group_id=booking_group_id,
            access_code=access_code,
            customer_id=customer_id,
            total_price=total_price,
        )

    def _build_rows(
        self, request: BookingRequest, customer_id: str, booking_group_id: str
    ) -> List[Dict[str, Any]]:
        slot = request.time_slot
        assert slot is not None
        discount = normalize_discount(request.discount_percentage)

        rows = []
        for station in request.stations:
            original, final = calculate_prices(
                station.hourly_rate, request.duration_minutes, discount
            )
            rows.append(
                {
                    "station_id": station.id,
                    "customer_id": customer_id,
                    "booking_group_id": booking_group_id,
                    "booking_date": request.booking_date,
                    "start_time": slot.start_time,
                    "end_time": slot.end_time,
                    "duration_minutes": request.duration_minutes,
                    "status": BookingStatus.CONFIRMED.value,
                    "coupon_code": request.coupon_code,
                    "discount_percentage": discount,
                    "original_price": original,
                    "final_price": final,
                }
            )
        return rows

    async def _insert_group(self, rows: List[Dict[str, Any]], booking_date: date) -> List[str]:
        try:
            booking_ids = await self.run_sync(self._create_group_ids, rows)
        except RepositoryConflict as e:
            self.logger.warning(f"Slot taken before commit for stations {e.station_ids}")
            raise SlotNoLongerAvailable(
                e.station_ids, details={"booking_date": booking_date.isoformat()}
            ) from e
        except RepositoryException as e:
            self.logger.error(f"Booking insert failed: {e}")
            raise BookingInsertFailed(str(e)) from e

        if not booking_ids:
            raise NoBookingsCreated()
        return booking_ids

    def _create_group_ids(self, rows: List[Dict[str, Any]]) -> List[str]:
        return [booking.id for booking in self.booking_repository.create_group(rows)]

    async def _issue_access_code(self, first_booking_id: str, booking_group_id: str) -> str:
        """Store a fresh access code, falling back to one derived from the booking id."""
        last_error = "no attempts made"
        for attempt in range(1, settings.access_code_attempts + 1):
            code = generate_access_code(settings.access_code_length)
            try:
                await self.run_sync(
                    self.booking_view_repository.create_view,
                    first_booking_id,
                    booking_group_id,
                    code,
                )
                return code
            except RepositoryConflict as e:
                last_error = str(e)
                self.logger.debug(f"Access code collision on attempt {attempt}")
            except RepositoryException as e:
                last_error = str(e)
                break

        error = AccessCodeUnavailable(booking_group_id, last_error)
        self.logger.error(f"{error.message}; using fallback code")
        fallback = fallback_access_code(first_booking_id)
        try:
            await self.run_sync(
                self.booking_view_repository.create_view,
                first_booking_id,
                booking_group_id,
                fallback,
            )
        except RepositoryException as e:
            # Still valid on the confirmation, but lookup by code will not find it
            self.logger.error(f"Could not store fallback access code for {booking_group_id}: {e}")
        return fallback

    def _invalidate_caches(self, booking_date: date) -> None:
        if not self.cache:
            return
        self.availability_service.invalidate_date(booking_date)
        self.cache.delete_namespace(CacheNamespace.TODAY_BOOKINGS)
