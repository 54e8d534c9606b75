"""
Timezone utilities for the lounge.

Booking dates and times are stored as lounge-local wall clock values, so
"now" and "today" are always resolved in the lounge timezone.
"""

from datetime import datetime

import pytz

from .config import settings


def get_lounge_timezone() -> pytz.BaseTzInfo:
    """Get the configured lounge timezone."""
    return pytz.timezone(settings.lounge_timezone)


def get_lounge_now() -> datetime:
    """
    Get the current lounge-local time as a naive datetime.

    Naive so it compares directly with booking date + time values.
    """
    return datetime.now(get_lounge_timezone()).replace(tzinfo=None)

