# backend/lounge/core/enums.py
"""
Core enums for the lounge booking engine.

Values match the strings persisted in the bookings store.
"""

from enum import Enum


class StationType(str, Enum):
    """Kinds of bookable stations."""

    PS5 = "ps5"
    POOL = "8ball"


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    CONFIRMED = "confirmed"  # Default - instant booking
    COMPLETED = "completed"  # Session ended (set by the system)
    CANCELLED = "cancelled"  # Cancelled by customer or staff
    NO_SHOW = "no-show"  # Customer didn't attend

    @property
    def is_terminal(self) -> bool:
        return self is not BookingStatus.CONFIRMED

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    BookingStatus.CONFIRMED: "Confirmed",
    BookingStatus.COMPLETED: "Completed",
    BookingStatus.CANCELLED: "Cancelled",
    BookingStatus.NO_SHOW: "No Show",
}


class StatusActor(str, Enum):
    """Who changed a booking's status."""

    SYSTEM = "system"
    CUSTOMER = "customer"
    STAFF = "staff"
