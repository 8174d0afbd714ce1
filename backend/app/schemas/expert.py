# backend/app/schemas/expert.py
"""Expert profile and schedule schemas."""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import Field, field_serializer

from ._strict_base import StrictModel, StrictRequestModel


class TimeWindow(StrictRequestModel):
    start: str = Field(..., description="HH:MM")
    end: str = Field(..., description="HH:MM, after start")


class BreakRule(TimeWindow):
    days: List[int] = Field(..., description="Weekday indices, Sunday=0 .. Saturday=6")


class ScheduleUpdate(StrictRequestModel):
    """Replaces the weekly availability; omitted optional fields are kept."""

    availability: Dict[str, List[TimeWindow]] = Field(
        ..., description="Weekday name -> windows"
    )
    break_times: Optional[List[BreakRule]] = None
    slot_duration: Optional[int] = Field(default=None, description="15, 30 or 60")
    timezone: Optional[str] = Field(default=None, description="IANA timezone name")


class ExpertResponse(StrictModel):
    id: str
    account_id: str
    display_name: Optional[str] = None
    headline: Optional[str] = None
    hourly_rate: Decimal
    currency: str
    timezone: str
    slot_duration: int
    availability: Dict[str, List[Dict[str, str]]] = Field(default_factory=dict)
    break_times: List[dict] = Field(default_factory=list)
    is_approved: bool
    is_accepting_clients: bool
    total_sessions: int
    completed_sessions: int
    cancelled_sessions: int
    total_earnings: Decimal
    rating: float
    review_count: int

    @field_serializer("hourly_rate", "total_earnings")
    def _decimal(self, value: Decimal) -> str:
        return str(value)


class TimeSlotResponse(StrictModel):
    start: str
    end: str


class AvailableSlotsResponse(StrictModel):
    expert_id: str
    date: date
    duration_minutes: int
    timezone: str
    slots: List[TimeSlotResponse]


class AvailableDatesResponse(StrictModel):
    expert_id: str
    year: int
    month: int
    duration_minutes: int
    dates: List[date]
