# backend/app/routes/v1/experts.py
"""
Expert routes - API v1

Versioned expert endpoints under /api/v1/experts.
All business logic delegated to ExpertService and AvailabilityService.

Endpoints:
    GET /{expert_id} - Public expert profile with statistics
    PUT /{expert_id}/availability - Replace the weekly schedule (owner or admin)
    GET /{expert_id}/availability/slots - Bookable slots for one date
    GET /{expert_id}/availability/dates - Dates with at least one slot in a month
"""

import asyncio
from datetime import date
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import (
    get_availability_service,
    get_current_actor,
    get_expert_service,
)
from ...core.enums import Capability
from ...core.exceptions import DomainException
from ...core.permissions import Actor, authorize
from ...schemas.expert import (
    AvailableDatesResponse,
    AvailableSlotsResponse,
    ExpertResponse,
    ScheduleUpdate,
    TimeSlotResponse,
)
from ...services.availability_calculator import DEFAULT_DATES_DURATION, AvailabilityService
from ...services.expert_service import ExpertService
from .errors import handle_domain_exception

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["experts-v1"])


@router.get("/{expert_id}", response_model=ExpertResponse)
async def get_expert(
    expert_id: str,
    expert_service: ExpertService = Depends(get_expert_service),
) -> ExpertResponse:
    """Expert profile, schedule and running statistics."""
    try:
        expert = await asyncio.to_thread(expert_service.get_expert, expert_id)
        return ExpertResponse.model_validate(expert)
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/{expert_id}/availability", response_model=ExpertResponse)
async def update_availability(
    expert_id: str,
    payload: ScheduleUpdate,
    actor: Actor = Depends(get_current_actor),
    expert_service: ExpertService = Depends(get_expert_service),
) -> ExpertResponse:
    """Replace the expert's weekly availability and break rules."""
    try:
        expert = await asyncio.to_thread(
            expert_service.update_schedule,
            actor,
            expert_id,
            {
                weekday: [window.model_dump() for window in windows]
                for weekday, windows in payload.availability.items()
            },
            (
                [rule.model_dump() for rule in payload.break_times]
                if payload.break_times is not None
                else None
            ),
            payload.slot_duration,
            payload.timezone,
        )
        return ExpertResponse.model_validate(expert)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{expert_id}/availability/slots", response_model=AvailableSlotsResponse)
async def get_available_slots(
    expert_id: str,
    on_date: date = Query(..., alias="date", description="Local date, YYYY-MM-DD"),
    duration: int = Query(..., description="Session length in minutes"),
    actor: Actor = Depends(get_current_actor),
    availability_service: AvailabilityService = Depends(get_availability_service),
    expert_service: ExpertService = Depends(get_expert_service),
) -> AvailableSlotsResponse:
    """Bookable start times for ``date`` in the expert's timezone."""
    try:
        authorize(actor, Capability.VIEW_AVAILABILITY)
        slots = await asyncio.to_thread(
            availability_service.get_available_slots, expert_id, on_date, duration
        )
        expert = await asyncio.to_thread(expert_service.get_expert, expert_id)
        return AvailableSlotsResponse(
            expert_id=expert_id,
            date=on_date,
            duration_minutes=duration,
            timezone=expert.timezone,
            slots=[TimeSlotResponse(**slot.to_dict()) for slot in slots],
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{expert_id}/availability/dates", response_model=AvailableDatesResponse)
async def get_available_dates(
    expert_id: str,
    year: int = Query(..., ge=1970, le=9999),
    month: int = Query(..., description="1-12"),
    duration: Optional[int] = Query(None, description="Session length; defaults to 30"),
    actor: Actor = Depends(get_current_actor),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailableDatesResponse:
    """Every date in the month that has at least one bookable slot."""
    try:
        authorize(actor, Capability.VIEW_AVAILABILITY)
        dates = await asyncio.to_thread(
            availability_service.get_available_dates, expert_id, year, month, duration
        )
        return AvailableDatesResponse(
            expert_id=expert_id,
            year=year,
            month=month,
            duration_minutes=duration or DEFAULT_DATES_DURATION,
            dates=dates,
        )
    except DomainException as e:
        handle_domain_exception(e)
