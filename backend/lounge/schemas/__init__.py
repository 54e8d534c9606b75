# backend/lounge/schemas/__init__.py
from .booking import (
    BookingConfirmation,
    BookingCreateBody,
    BookingDetails,
    BookingRequest,
    BookingStats,
    ControllerAvailability,
    CustomerInfo,
    StatusChangeResponse,
    TimeSlot,
    TodayBookings,
    UpcomingReminder,
)
from .station import StationSnapshot

__all__ = [
    "BookingConfirmation",
    "BookingCreateBody",
    "BookingDetails",
    "BookingRequest",
    "BookingStats",
    "ControllerAvailability",
    "CustomerInfo",
    "StatusChangeResponse",
    "StationSnapshot",
    "TimeSlot",
    "TodayBookings",
    "UpcomingReminder",
]
