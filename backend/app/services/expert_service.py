# backend/app/services/expert_service.py
"""
Expert Service.

Reads expert profiles and replaces an expert's recurring schedule. Saved
schedules are normalised and validated here so the slot calculator only
ever sees well-formed, same-day, non-overlapping windows.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.enums import Capability
from ..core.exceptions import NotFoundException, ValidationException
from ..core.permissions import Actor, authorize
from ..core.timezone_utils import is_known_timezone
from ..models.expert import ALLOWED_SLOT_DURATIONS, Expert
from ..repositories.factory import RepositoryFactory
from ..utils.time_helpers import WEEKDAY_NAMES, is_valid_hhmm, time_to_minutes
from .base import BaseService

logger = logging.getLogger(__name__)

Availability = Dict[str, List[Dict[str, str]]]
BreakRules = List[Dict[str, Any]]


def _validate_window(window: Mapping[str, Any], where: str) -> Tuple[int, int]:
    start = window.get("start")
    end = window.get("end")
    if not is_valid_hhmm(start) or not is_valid_hhmm(end):
        raise ValidationException(
            f"{where}: times must use HH:MM",
            details={"start": start, "end": end},
        )
    start_min, end_min = time_to_minutes(start), time_to_minutes(end)
    if end_min <= start_min:
        raise ValidationException(
            f"{where}: end time must be after start time",
            details={"start": start, "end": end},
        )
    return start_min, end_min


def _reject_overlaps(bounds: List[Tuple[int, int]], where: str) -> None:
    ordered = sorted(bounds)
    for (_, prev_end), (next_start, _) in zip(ordered, ordered[1:]):
        if next_start < prev_end:
            raise ValidationException(f"{where}: windows overlap")


def validate_availability(availability: Mapping[str, Sequence[Mapping[str, Any]]]) -> Availability:
    """Return a normalised copy of a weekly availability map."""
    if not isinstance(availability, Mapping):
        raise ValidationException("Availability must map weekday names to windows")

    normalised: Availability = {}
    for weekday, windows in availability.items():
        if weekday not in WEEKDAY_NAMES:
            raise ValidationException(
                f"Unknown weekday '{weekday}'", details={"allowed": WEEKDAY_NAMES}
            )
        bounds = [_validate_window(window, weekday) for window in windows or []]
        _reject_overlaps(bounds, weekday)
        if windows:
            normalised[weekday] = [
                {"start": window["start"], "end": window["end"]}
                for window in sorted(windows, key=lambda w: time_to_minutes(w["start"]))
            ]
    return normalised


def validate_break_times(break_times: Iterable[Mapping[str, Any]]) -> BreakRules:
    rules: BreakRules = []
    for index, rule in enumerate(break_times or []):
        where = f"Break {index + 1}"
        _validate_window(rule, where)
        days = rule.get("days")
        if not days or not all(
            isinstance(day, int) and not isinstance(day, bool) and 0 <= day <= 6 for day in days
        ):
            raise ValidationException(
                f"{where}: days must be weekday indices 0 (Sunday) to 6 (Saturday)",
                details={"days": days},
            )
        rules.append({"start": rule["start"], "end": rule["end"], "days": sorted(set(days))})
    return rules


class ExpertService(BaseService):
    """Expert profile reads and schedule updates."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.expert_repository = RepositoryFactory.create_expert_repository(db)

    def get_expert(self, expert_id: str) -> Expert:
        expert = self.expert_repository.get_by_id(expert_id)
        if expert is None:
            raise NotFoundException("Expert not found", details={"expert_id": expert_id})
        return expert

    @BaseService.measure_operation("update_schedule")
    def update_schedule(
        self,
        actor: Actor,
        expert_id: str,
        availability: Mapping[str, Sequence[Mapping[str, Any]]],
        break_times: Optional[Iterable[Mapping[str, Any]]] = None,
        slot_duration: Optional[int] = None,
        timezone_name: Optional[str] = None,
    ) -> Expert:
        """
        Replace the expert's weekly schedule.

        Omitted ``break_times``, ``slot_duration`` and ``timezone_name`` keep
        their stored values. Existing sessions are not touched.
        """
        expert = self.get_expert(expert_id)
        authorize(actor, Capability.MANAGE_AVAILABILITY, {expert.account_id})
        self.log_operation("update_schedule", expert_id=expert_id, actor_id=actor.id)

        normalised = validate_availability(availability)
        rules = validate_break_times(break_times) if break_times is not None else None

        if slot_duration is not None and slot_duration not in ALLOWED_SLOT_DURATIONS:
            raise ValidationException(
                f"Slot duration must be one of {list(ALLOWED_SLOT_DURATIONS)} minutes",
                details={"slot_duration": slot_duration},
            )
        if timezone_name is not None and not is_known_timezone(timezone_name):
            raise ValidationException(
                f"Unknown timezone '{timezone_name}'", details={"timezone": timezone_name}
            )

        with self.transaction():
            expert.availability = normalised
            if rules is not None:
                expert.break_times = rules
            if slot_duration is not None:
                expert.slot_duration = slot_duration
            if timezone_name is not None:
                expert.timezone = timezone_name

        self.logger.info(
            f"Schedule updated for expert {expert_id}: "
            f"{sum(len(w) for w in normalised.values())} windows"
        )
        return expert
