# backend/app/schemas/__init__.py
"""
Pydantic schemas for the scheduling API.

Request models reject unknown fields; response models are built from ORM
objects and render times as HH:MM and money as strings.
"""

from .base_responses import HealthResponse, PaginatedResponse
from .expert import (
    AvailableDatesResponse,
    AvailableSlotsResponse,
    BreakRule,
    ExpertResponse,
    ScheduleUpdate,
    TimeSlotResponse,
    TimeWindow,
)
from .session import (
    CancellationResponse,
    SessionCancel,
    SessionCreate,
    SessionCreateResponse,
    SessionRate,
    SessionRefund,
    SessionResponse,
)

__all__ = [
    # Shared
    "HealthResponse",
    "PaginatedResponse",
    # Expert schemas
    "TimeWindow",
    "BreakRule",
    "ScheduleUpdate",
    "ExpertResponse",
    "TimeSlotResponse",
    "AvailableSlotsResponse",
    "AvailableDatesResponse",
    # Session schemas
    "SessionCreate",
    "SessionCancel",
    "SessionRate",
    "SessionRefund",
    "SessionResponse",
    "SessionCreateResponse",
    "CancellationResponse",
]
