# backend/app/utils/time_helpers.py
"""Wall-clock helpers for HH:MM strings, minute offsets and weekday names."""

from datetime import date, time
import re
from typing import List

HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

# Sunday-first, matching the weekday indices stored on break rules (Sunday=0).
WEEKDAY_NAMES: List[str] = [
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
]

MINUTES_PER_DAY = 24 * 60


def is_valid_hhmm(value: str) -> bool:
    return isinstance(value, str) and HHMM_PATTERN.match(value) is not None


def string_to_time(time_str: str) -> time:
    """Parse a strict 24h ``HH:MM`` string."""
    match = HHMM_PATTERN.match(time_str or "")
    if match is None:
        raise ValueError(f"Invalid time '{time_str}', expected HH:MM")
    return time(int(match.group(1)), int(match.group(2)))


def time_to_string(t: time) -> str:
    """Always return HH:MM format"""
    return t.strftime("%H:%M")


def time_to_minutes(value) -> int:
    """Minutes since midnight for a ``time`` or an ``HH:MM`` string."""
    if isinstance(value, str):
        value = string_to_time(value)
    return value.hour * 60 + value.minute


def minutes_to_time(minutes: int) -> time:
    if minutes < 0 or minutes >= MINUTES_PER_DAY:
        raise ValueError(f"{minutes} minutes is outside a single day")
    return time(minutes // 60, minutes % 60)


def weekday_index(day: date) -> int:
    """Sunday=0 .. Saturday=6."""
    return (day.weekday() + 1) % 7


def weekday_name(day: date) -> str:
    return WEEKDAY_NAMES[weekday_index(day)]
