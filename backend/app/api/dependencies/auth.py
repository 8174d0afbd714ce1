# backend/app/api/dependencies/auth.py
"""
Caller identity dependencies.

Authentication happens upstream (gateway); requests arrive with the
authenticated account id and role in trusted headers. This module only
turns those headers into an ``Actor`` for the services to authorize.
"""

import logging
from typing import Optional

from fastapi import Header, HTTPException, status

from ...core.enums import ActorRole
from ...core.permissions import Actor

logger = logging.getLogger(__name__)

ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_ROLE_HEADER = "X-Actor-Role"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_actor(
    actor_id: Optional[str] = Header(default=None, alias=ACTOR_ID_HEADER),
    actor_role: Optional[str] = Header(default=None, alias=ACTOR_ROLE_HEADER),
) -> Actor:
    """Resolve the authenticated caller or reject the request with 401."""
    if not actor_id or not actor_role:
        raise _unauthorized("Missing caller identity")
    try:
        role = ActorRole(actor_role.strip().lower())
    except ValueError:
        logger.warning("Rejected request with unknown role %r", actor_role)
        raise _unauthorized(f"Unknown role '{actor_role}'")
    return Actor(id=actor_id.strip(), role=role)
