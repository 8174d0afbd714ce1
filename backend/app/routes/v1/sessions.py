# backend/app/routes/v1/sessions.py
"""
Session routes - API v1

Versioned consultation session endpoints under /api/v1/sessions.
All business logic delegated to BookingScheduler, SessionLifecycle and
SessionQueryService.

Endpoints:
    GET /upcoming - Soonest active sessions for the caller
    GET / - List the caller's sessions with pagination
    POST / - Book a session
    GET /{session_id} - Session details
    PATCH /{session_id} - Update meeting link or notes (expert or admin)
    POST /{session_id}/complete - Mark a confirmed session completed
    POST /{session_id}/cancel - Cancel with policy-based refund
    POST /{session_id}/rate - Rate a completed session
    POST /{session_id}/refund - Administrative refund
"""

import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from ...api.dependencies import (
    get_booking_scheduler,
    get_current_actor,
    get_session_lifecycle,
    get_session_query_service,
)
from ...core.exceptions import DomainException
from ...core.permissions import Actor
from ...schemas.base_responses import PaginatedResponse
from ...schemas.session import (
    CancellationResponse,
    SessionCancel,
    SessionCreate,
    SessionCreateResponse,
    SessionRate,
    SessionRefund,
    SessionResponse,
    SessionUpdate,
)
from ...services.booking_scheduler import BookingScheduler
from ...services.session_lifecycle import SessionLifecycle
from ...services.session_query_service import SessionQueryService
from .errors import handle_domain_exception

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["sessions-v1"])


# ============================================================================
# SECTION 1: Static routes (no path parameters)
# ============================================================================


@router.get("/upcoming", response_model=List[SessionResponse])
async def get_upcoming_sessions(
    limit: Optional[int] = Query(None, ge=1, le=20),
    actor: Actor = Depends(get_current_actor),
    query_service: SessionQueryService = Depends(get_session_query_service),
) -> List[SessionResponse]:
    """Upcoming sessions for dashboard widgets."""
    try:
        sessions = await asyncio.to_thread(query_service.get_upcoming_sessions, actor, limit)
        return [SessionResponse.model_validate(s) for s in sessions]
    except DomainException as e:
        handle_domain_exception(e)


@router.get("", response_model=PaginatedResponse[SessionResponse])
async def list_sessions(
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    query_service: SessionQueryService = Depends(get_session_query_service),
) -> PaginatedResponse[SessionResponse]:
    """List sessions visible to the caller, newest first."""
    try:
        result = await asyncio.to_thread(
            query_service.list_sessions,
            actor,
            status=status_filter,
            page=page,
            per_page=per_page,
        )
        return PaginatedResponse(
            items=[SessionResponse.model_validate(s) for s in result.items],
            total=result.total,
            page=result.page,
            per_page=result.per_page,
            has_next=result.has_next,
            has_prev=result.page > 1,
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("", response_model=SessionCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: SessionCreate,
    actor: Actor = Depends(get_current_actor),
    scheduler: BookingScheduler = Depends(get_booking_scheduler),
) -> SessionCreateResponse:
    """
    Book a session.

    Returns 409 when the slot is already taken and 422 when the expert is
    not currently bookable.
    """
    try:
        result = await asyncio.to_thread(
            scheduler.create_session,
            actor,
            payload.expert_id,
            payload.scheduled_date,
            payload.scheduled_time,
            payload.duration_minutes,
            payload.use_credits,
            payload.notes,
        )
        return SessionCreateResponse(
            session=SessionResponse.model_validate(result.session),
            amount_due=str(result.amount_due),
            requires_payment=result.requires_payment,
        )
    except DomainException as e:
        handle_domain_exception(e)


# ============================================================================
# SECTION 2: Routes with path parameters
# ============================================================================


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    actor: Actor = Depends(get_current_actor),
    query_service: SessionQueryService = Depends(get_session_query_service),
) -> SessionResponse:
    try:
        session = await asyncio.to_thread(query_service.get_session, actor, session_id)
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{session_id}", response_model=SessionResponse)
async def update_session(
    session_id: str,
    payload: SessionUpdate,
    actor: Actor = Depends(get_current_actor),
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
) -> SessionResponse:
    """Set the meeting link or notes of a pending or confirmed session."""
    try:
        session = await asyncio.to_thread(
            lifecycle.update_session_details,
            actor,
            session_id,
            payload.meeting_link,
            payload.notes,
        )
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{session_id}/complete", response_model=SessionResponse)
async def complete_session(
    session_id: str,
    actor: Actor = Depends(get_current_actor),
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
) -> SessionResponse:
    """Mark a confirmed session as completed (expert or admin)."""
    try:
        session = await asyncio.to_thread(lifecycle.complete_session, actor, session_id)
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{session_id}/cancel", response_model=CancellationResponse)
async def cancel_session(
    session_id: str,
    payload: Optional[SessionCancel] = Body(default=None),
    actor: Actor = Depends(get_current_actor),
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
) -> CancellationResponse:
    """Cancel a pending or confirmed session; refund follows the lead-time policy."""
    try:
        result = await asyncio.to_thread(
            lifecycle.cancel_session, actor, session_id, payload.reason if payload else None
        )
        return CancellationResponse(
            session=SessionResponse.model_validate(result.session),
            refund_amount=str(result.refund_amount),
            refund_fraction=str(result.refund_fraction),
            hours_until_session=round(result.hours_until_session, 2),
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{session_id}/rate", response_model=SessionResponse)
async def rate_session(
    session_id: str,
    payload: SessionRate,
    actor: Actor = Depends(get_current_actor),
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
) -> SessionResponse:
    try:
        session = await asyncio.to_thread(
            lifecycle.rate_session, actor, session_id, payload.rating, payload.review
        )
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{session_id}/refund", response_model=SessionResponse)
async def refund_session(
    session_id: str,
    payload: Optional[SessionRefund] = Body(default=None),
    actor: Actor = Depends(get_current_actor),
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
) -> SessionResponse:
    """Administrative full refund."""
    try:
        session = await asyncio.to_thread(
            lifecycle.refund_session, actor, session_id, payload.reason if payload else None
        )
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)
