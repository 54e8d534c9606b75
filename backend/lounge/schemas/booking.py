# backend/lounge/schemas/booking.py
"""
Booking schemas for the lounge.

Requests are deliberately permissive about *presence* (empty strings and
missing values are allowed through) so BookingService can report every
missing field at once before touching the store.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import Field, field_validator

from ..core.enums import BookingStatus, StationType
from ._strict_base import StrictModel, StrictRequestModel
from .station import StationSnapshot


class TimeSlot(StrictModel):
    """Candidate booking window. Derived, never persisted."""

    start_time: time
    end_time: time
    is_available: bool = True

    @property
    def label(self) -> str:
        return f"{self.start_time.strftime('%H:%M')}-{self.end_time.strftime('%H:%M')}"


class CustomerInfo(StrictRequestModel):
    """Customer details captured by the booking form."""

    name: str = ""
    phone: str = ""
    email: Optional[str] = None
    customer_id: Optional[str] = None

    @field_validator("name", "phone", mode="before")
    @classmethod
    def strip_text(cls, v: object) -> object:
        if v is None:
            return ""
        return v.strip() if isinstance(v, str) else v

    @field_validator("email", mode="before")
    @classmethod
    def empty_email_is_none(cls, v: object) -> object:
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


class BookingRequest(StrictRequestModel):
    """One submission covering one or more stations for the same window."""

    stations: List[StationSnapshot] = Field(default_factory=list)
    booking_date: Optional[date] = None
    time_slot: Optional[TimeSlot] = None
    duration_minutes: int = 60
    customer: CustomerInfo = Field(default_factory=CustomerInfo)
    coupon_code: Optional[str] = None
    discount_percentage: Decimal = Decimal("0")

    @field_validator("coupon_code", mode="before")
    @classmethod
    def clean_coupon(cls, v: object) -> object:
        if isinstance(v, str):
            v = v.strip().upper()
            return v or None
        return v


class BookingConfirmation(StrictModel):
    booking_ids: List[str]
    booking_group_id: str
    access_code: str
    customer_id: str
    total_price: Decimal


class BookingDetails(StrictModel):
    """Booking as returned by lookups, with the status a reader should see."""

    id: str
    booking_group_id: str
    booking_date: date
    start_time: time
    end_time: time
    duration_minutes: int
    status: BookingStatus
    effective_status: BookingStatus
    station_id: str
    station_name: Optional[str] = None
    station_type: Optional[StationType] = None
    customer_id: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    coupon_code: Optional[str] = None
    discount_percentage: Decimal
    original_price: Decimal
    final_price: Decimal
    access_code: Optional[str] = None
    status_updated_at: Optional[datetime] = None
    status_updated_by: Optional[str] = None


class TodayBookings(StrictModel):
    bookings: List[BookingDetails]
    grouped: Dict[str, List[BookingDetails]]
    time_keys: List[str]


class UpcomingReminder(StrictModel):
    booking_id: str
    customer_name: str
    station_name: str
    start_time: time
    minutes_until_start: int

    @property
    def message(self) -> str:
        return (
            f"Upcoming booking for {self.customer_name} at "
            f"{self.start_time.strftime('%H:%M')} for {self.station_name}"
        )


class BookingStats(StrictModel):
    total: int = 0
    upcoming: int = 0
    today: int = 0
    ps5: int = 0
    pool: int = 0


class BookingCreateBody(StrictRequestModel):
    """Public booking form payload; stations are referenced by id only."""

    station_ids: List[str] = Field(default_factory=list)
    booking_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    duration_minutes: int = 60
    customer: CustomerInfo = Field(default_factory=CustomerInfo)
    coupon_code: Optional[str] = None
    discount_percentage: Decimal = Decimal("0")


class ControllerAvailability(StrictModel):
    available_controllers: int
    total_controllers: int


class StatusChangeResponse(StrictModel):
    booking_id: str
    status: BookingStatus
    updated_by: str
    updated_at: datetime
