"""
Timezone utilities for the scheduling engine.

Session dates and times are wall-clock values in the expert's timezone;
these helpers turn them into absolute instants.
"""

from datetime import date, datetime, time, timezone as dt_timezone
from typing import Optional

import pytz

from .config import settings


def get_timezone(name: Optional[str]) -> pytz.BaseTzInfo:
    """Resolve a timezone name, falling back to the configured default."""
    try:
        return pytz.timezone(name or settings.default_timezone)
    except pytz.UnknownTimeZoneError:
        return pytz.timezone(settings.default_timezone)


def is_known_timezone(name: str) -> bool:
    return name in pytz.all_timezones_set


def now_in_timezone(name: Optional[str], now: Optional[datetime] = None) -> datetime:
    """
    Current wall-clock datetime in the named timezone.

    Args:
        name: IANA timezone name
        now: Aware instant to convert (defaults to the current UTC time)
    """
    instant = now or datetime.now(dt_timezone.utc)
    return instant.astimezone(get_timezone(name))


def local_to_utc(day: date, at: time, name: Optional[str]) -> datetime:
    """Combine a local date and time in ``name`` into an aware UTC datetime."""
    tz = get_timezone(name)
    localized = tz.localize(datetime.combine(day, at))
    return localized.astimezone(dt_timezone.utc)
