# backend/app/routes/v1/payments.py
"""
Payment outcome routes - API v1

Called by the payment integration (system actor) or an admin to report
whether a session's payment was captured.

Endpoints:
    POST /sessions/{session_id}/succeeded - Payment captured, confirm session
    POST /sessions/{session_id}/failed - Payment failed, session stays pending
"""

import asyncio
import logging

from fastapi import APIRouter, Depends

from ...api.dependencies import get_current_actor, get_session_lifecycle
from ...core.exceptions import DomainException
from ...core.permissions import Actor
from ...schemas.session import SessionResponse
from ...services.session_lifecycle import SessionLifecycle
from .errors import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments-v1"])


@router.post("/sessions/{session_id}/succeeded", response_model=SessionResponse)
async def payment_succeeded(
    session_id: str,
    actor: Actor = Depends(get_current_actor),
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
) -> SessionResponse:
    """Confirm the session; repeated reports are idempotent."""
    try:
        session = await asyncio.to_thread(lifecycle.confirm_session, actor, session_id)
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/sessions/{session_id}/failed", response_model=SessionResponse)
async def payment_failed(
    session_id: str,
    actor: Actor = Depends(get_current_actor),
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
) -> SessionResponse:
    try:
        session = await asyncio.to_thread(lifecycle.mark_payment_failed, actor, session_id)
        return SessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)
