# backend/app/services/availability_calculator.py
"""
Bookable slot computation.

Pure functions that turn an expert's recurring weekly availability, break
rules and already-booked intervals into the start times a client can book.
All intervals are half-open ``[start, end)`` in minutes since midnight of
the expert's local day.

``AvailabilityService`` at the bottom wires these functions to storage.
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime, time
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException, ValidationException
from ..core.timezone_utils import now_in_timezone
from ..models.consultation_session import ALLOWED_DURATIONS
from ..models.expert import Expert
from ..repositories.factory import RepositoryFactory
from ..utils.time_helpers import (
    minutes_to_time,
    time_to_minutes,
    time_to_string,
    weekday_index,
    weekday_name,
)
from .base import BaseService

logger = logging.getLogger(__name__)

TimeLike = Union[time, str]
BookedInterval = Tuple[TimeLike, int]

DEFAULT_DATES_DURATION = min(ALLOWED_DURATIONS)


@dataclass(frozen=True)
class TimeSlot:
    """A bookable ``[start, end)`` interval."""

    start: time
    end: time

    def to_dict(self) -> Dict[str, str]:
        return {"start": time_to_string(self.start), "end": time_to_string(self.end)}


def _overlaps(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    return start_a < end_b and start_b < end_a


def _window_bounds(window: Mapping[str, Any]) -> Optional[Tuple[int, int]]:
    try:
        start = time_to_minutes(window["start"])
        end = time_to_minutes(window["end"])
    except (KeyError, TypeError, ValueError):
        logger.warning("Ignoring malformed availability window %r", window)
        return None
    if end <= start:
        # Overnight windows are rejected when schedules are saved.
        logger.warning("Ignoring non-positive availability window %r", window)
        return None
    return start, end


def _breaks_for_weekday(
    break_times: Iterable[Mapping[str, Any]], weekday: int
) -> List[Tuple[int, int]]:
    intervals: List[Tuple[int, int]] = []
    for rule in break_times or ():
        if weekday not in (rule.get("days") or ()):
            continue
        bounds = _window_bounds(rule)
        if bounds is not None:
            intervals.append(bounds)
    return intervals


def _is_free(
    start: int, end: int, breaks: List[Tuple[int, int]], taken: List[Tuple[int, int]]
) -> bool:
    if any(_overlaps(start, end, b_start, b_end) for b_start, b_end in breaks):
        return False
    return not any(_overlaps(start, end, t_start, t_end) for t_start, t_end in taken)


def _booked_minutes(booked: Iterable[BookedInterval]) -> List[Tuple[int, int]]:
    intervals = []
    for start, duration in booked or ():
        begin = time_to_minutes(start)
        intervals.append((begin, begin + int(duration)))
    return intervals


def compute_slots(
    availability: Mapping[str, Sequence[Mapping[str, Any]]],
    break_times: Sequence[Mapping[str, Any]],
    slot_duration: int,
    on_date: date,
    duration_minutes: int,
    booked: Iterable[BookedInterval] = (),
    now: Optional[datetime] = None,
) -> List[TimeSlot]:
    """
    Bookable slots for one date.

    Args:
        availability: Weekday name -> list of ``{"start", "end"}`` HH:MM windows
        break_times: ``{"start", "end", "days"}`` rules, days Sunday=0..Saturday=6
        slot_duration: Step between candidate start times, in minutes
        on_date: Local calendar date
        duration_minutes: Requested session length
        booked: ``(start, duration_minutes)`` of active sessions on that date
        now: Current wall-clock time in the expert's timezone. When given,
            starts at or before it are dropped on that day and earlier dates
            yield nothing.

    Returns:
        Slots ordered by start time.
    """
    if duration_minutes <= 0 or slot_duration <= 0:
        return []

    if now is not None and on_date < now.date():
        return []

    windows = (availability or {}).get(weekday_name(on_date)) or []
    if not windows:
        return []

    breaks = _breaks_for_weekday(break_times, weekday_index(on_date))
    taken = _booked_minutes(booked)

    # Seconds since local midnight; starts at or before it have passed.
    cutoff: Optional[int] = None
    if now is not None and on_date == now.date():
        cutoff = now.hour * 3600 + now.minute * 60 + now.second

    starts = set()
    for window in windows:
        bounds = _window_bounds(window)
        if bounds is None:
            continue
        win_start, win_end = bounds
        candidate = win_start
        while candidate + duration_minutes <= win_end:
            end = candidate + duration_minutes
            has_passed = cutoff is not None and candidate * 60 <= cutoff
            if not has_passed and _is_free(candidate, end, breaks, taken):
                starts.add(candidate)
            candidate += slot_duration

    return [
        TimeSlot(start=minutes_to_time(start), end=minutes_to_time(start + duration_minutes))
        for start in sorted(starts)
    ]


def compute_available_dates(
    availability: Mapping[str, Sequence[Mapping[str, Any]]],
    break_times: Sequence[Mapping[str, Any]],
    slot_duration: int,
    year: int,
    month: int,
    duration_minutes: int,
    booked_by_date: Optional[Mapping[date, Iterable[BookedInterval]]] = None,
    now: Optional[datetime] = None,
) -> List[date]:
    """Every date of the month with at least one bookable slot."""
    booked_by_date = booked_by_date or {}
    _, days_in_month = calendar.monthrange(year, month)
    result = []
    for day in range(1, days_in_month + 1):
        current = date(year, month, day)
        slots = compute_slots(
            availability,
            break_times,
            slot_duration,
            current,
            duration_minutes,
            booked_by_date.get(current, ()),
            now=now,
        )
        if slots:
            result.append(current)
    return result


def slots_for_expert(
    expert: Expert,
    on_date: date,
    duration_minutes: int,
    booked: Iterable[BookedInterval] = (),
    now: Optional[datetime] = None,
) -> List[TimeSlot]:
    return compute_slots(
        expert.availability or {},
        expert.break_times or [],
        expert.slot_duration,
        on_date,
        duration_minutes,
        booked,
        now=now,
    )


class AvailabilityService(BaseService):
    """Serves slot and date queries for a stored expert."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.expert_repository = RepositoryFactory.create_expert_repository(db)
        self.session_repository = RepositoryFactory.create_session_repository(db)

    def _get_expert(self, expert_id: str) -> Expert:
        expert = self.expert_repository.get_by_id(expert_id, load_relationships=False)
        if expert is None:
            raise NotFoundException("Expert not found", details={"expert_id": expert_id})
        return expert

    @BaseService.measure_operation("get_available_slots")
    def get_available_slots(
        self,
        expert_id: str,
        on_date: date,
        duration_minutes: int,
        now: Optional[datetime] = None,
    ) -> List[TimeSlot]:
        if duration_minutes not in ALLOWED_DURATIONS:
            raise ValidationException(
                f"Duration must be one of {list(ALLOWED_DURATIONS)} minutes",
                details={"duration_minutes": duration_minutes},
            )
        expert = self._get_expert(expert_id)
        booked = self.session_repository.get_booked_intervals(expert.id, on_date)
        local_now = now_in_timezone(expert.timezone, now)
        return slots_for_expert(expert, on_date, duration_minutes, booked, now=local_now)

    @BaseService.measure_operation("get_available_dates")
    def get_available_dates(
        self,
        expert_id: str,
        year: int,
        month: int,
        duration_minutes: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[date]:
        if not 1 <= month <= 12:
            raise ValidationException("Month must be between 1 and 12", details={"month": month})
        duration = duration_minutes or DEFAULT_DATES_DURATION
        if duration not in ALLOWED_DURATIONS:
            raise ValidationException(
                f"Duration must be one of {list(ALLOWED_DURATIONS)} minutes",
                details={"duration_minutes": duration},
            )
        expert = self._get_expert(expert_id)
        _, days_in_month = calendar.monthrange(year, month)
        booked = self.session_repository.get_booked_intervals_between(
            expert.id, date(year, month, 1), date(year, month, days_in_month)
        )
        return compute_available_dates(
            expert.availability or {},
            expert.break_times or [],
            expert.slot_duration,
            year,
            month,
            duration,
            booked,
            now=now_in_timezone(expert.timezone, now),
        )
