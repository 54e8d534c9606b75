# backend/lounge/services/time_slots.py
"""
Time slot generation.

Pure functions: candidate booking windows between opening and closing time.
Availability from persisted bookings is layered on by AvailabilityService.
"""

from datetime import date, datetime, time, timedelta
from typing import List, Optional

from ..core.exceptions import ValidationException
from ..schemas.booking import TimeSlot

CLOCK_FORMAT = "%H:%M"


def parse_clock(value: str) -> time:
    """Parse 'HH:MM' (or 'HH:MM:SS') into a time."""
    try:
        return time.fromisoformat(value.strip())
    except (AttributeError, ValueError) as exc:
        raise ValidationException(
            f"Invalid time '{value}', expected HH:MM", code="INVALID_TIME"
        ) from exc


def format_clock(value: time) -> str:
    return value.strftime(CLOCK_FORMAT)


def time_ranges_overlap(a_start: time, a_end: time, b_start: time, b_end: time) -> bool:
    """Half-open overlap: touching ranges do not overlap."""
    return a_start < b_end and a_end > b_start


def generate_time_slots(
    open_time: time,
    close_time: time,
    duration_minutes: int,
    now: Optional[datetime] = None,
    buffer_minutes: int = 0,
) -> List[TimeSlot]:
    """
    Build consecutive windows of duration_minutes from open_time to close_time.

    A trailing window that would run past close_time is dropped. When now is
    given (the target date is today) every slot starting at or before
    now + buffer_minutes is marked unavailable; slots are never removed.

    Raises:
        ValidationException: duration_minutes is not positive
    """
    if duration_minutes <= 0:
        raise ValidationException(
            "Duration must be a positive number of minutes",
            code="INVALID_DURATION",
            details={"duration_minutes": duration_minutes},
        )

    # Anchor on an arbitrary day to do clock arithmetic
    anchor = date.min
    cursor = datetime.combine(anchor, open_time)
    closing = datetime.combine(anchor, close_time)
    step = timedelta(minutes=duration_minutes)

    cutoff: Optional[time] = None
    if now is not None:
        cutoff = (now + timedelta(minutes=buffer_minutes)).time()
        # A buffer that crosses midnight closes the whole day
        if (now + timedelta(minutes=buffer_minutes)).date() > now.date():
            cutoff = time.max

    slots: List[TimeSlot] = []
    while cursor + step <= closing:
        start = cursor.time()
        end = (cursor + step).time()
        is_available = cutoff is None or start > cutoff
        slots.append(TimeSlot(start_time=start, end_time=end, is_available=is_available))
        cursor += step

    return slots
