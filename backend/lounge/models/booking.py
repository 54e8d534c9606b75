# backend/lounge/models/booking.py
"""
Booking models for the lounge.

A Booking reserves one station for one time window. Bookings created from a
single submission share a booking_group_id. Bookings store date, times and a
price snapshot directly, so they stay valid when station rates change.

BookingView carries the short access code customers use to look a booking
group up without an account.
"""

from datetime import date, datetime, timedelta
import logging
from typing import Any

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Time,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import BookingStatus
from ..database import Base

logger = logging.getLogger(__name__)


class Booking(Base):
    """Reservation of a single station for a single time window."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    booking_group_id = Column(String(26), nullable=False, index=True)

    station_id = Column(String(26), ForeignKey("stations.id"), nullable=False, index=True)
    customer_id = Column(String(26), ForeignKey("customers.id"), nullable=False, index=True)

    booking_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration_minutes = Column("duration", Integer, nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value, index=True)

    # Pricing snapshot
    coupon_code = Column(String(64), nullable=True)
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    original_price = Column(Numeric(10, 2), nullable=False)
    final_price = Column(Numeric(10, 2), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    status_updated_at = Column(DateTime(timezone=True), nullable=True)
    status_updated_by = Column(String(20), nullable=True)

    station = relationship("Station")
    customer = relationship("Customer", back_populates="bookings")

    __table_args__ = (
        CheckConstraint(
            "status IN ('confirmed', 'completed', 'cancelled', 'no-show')",
            name="ck_bookings_status",
        ),
        CheckConstraint("duration > 0", name="ck_bookings_duration_positive"),
        CheckConstraint("final_price >= 0", name="ck_bookings_final_price_non_negative"),
        CheckConstraint(
            "discount_percentage >= 0 AND discount_percentage <= 100",
            name="ck_bookings_discount_range",
        ),
        # A station can hold only one confirmed booking starting at a given time
        Index(
            "uq_bookings_confirmed_station_start",
            "station_id",
            "booking_date",
            "start_time",
            unique=True,
            sqlite_where=text("status = 'confirmed'"),
            postgresql_where=text("status = 'confirmed'"),
        ),
        Index("ix_bookings_date_status", "booking_date", "status"),
    )

    def __init__(self, **kwargs: Any) -> None:
        """Initialize with instant confirmation by default."""
        super().__init__(**kwargs)
        if not self.status:
            self.status = BookingStatus.CONFIRMED.value

    @property
    def ends_at(self) -> datetime:
        """End as a datetime; an end at or before the start rolls into the next day."""
        end_date: date = self.booking_date
        if self.end_time <= self.start_time:
            end_date = end_date + timedelta(days=1)
        return datetime.combine(end_date, self.end_time)

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: station={self.station_id}, "
            f"date={self.booking_date}, time={self.start_time}-{self.end_time}, "
            f"status={self.status}>"
        )


class BookingView(Base):
    """Access code for a booking group, pointing at the group's first booking."""

    __tablename__ = "booking_views"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, unique=True)
    booking_group_id = Column(String(26), nullable=False, index=True)
    access_code = Column(String(16), nullable=False, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_accessed_at = Column(DateTime(timezone=True), nullable=True)

    booking = relationship("Booking")

    def __repr__(self) -> str:
        return f"<BookingView {self.access_code} -> {self.booking_id}>"
