# backend/app/services/session_query_service.py
"""Role-scoped reads of consultation sessions."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import ActorRole, Capability
from ..core.exceptions import NotFoundException, ValidationException
from ..core.permissions import Actor, authorize
from ..models.consultation_session import ConsultationSession, SessionStatus
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionPage:
    items: List[ConsultationSession]
    total: int
    page: int
    per_page: int

    @property
    def has_next(self) -> bool:
        return self.page * self.per_page < self.total


class SessionQueryService(BaseService):
    """
    Lists and fetches sessions visible to the caller.

    Clients see their own bookings, experts see sessions booked with them,
    admins and the system see everything.
    """

    def __init__(self, db: Session):
        super().__init__(db)
        self.session_repository = RepositoryFactory.create_session_repository(db)
        self.expert_repository = RepositoryFactory.create_expert_repository(db)

    def _scope(self, actor: Actor) -> Optional[Tuple[Optional[str], Optional[str]]]:
        """(client_id, expert_id) filter for ``actor``; None when nothing is visible."""
        if actor.role == ActorRole.CLIENT:
            return actor.id, None
        if actor.role == ActorRole.EXPERT:
            expert = self.expert_repository.get_by_account_id(actor.id)
            if expert is None:
                return None
            return None, expert.id
        return None, None

    @BaseService.measure_operation("list_sessions")
    def list_sessions(
        self,
        actor: Actor,
        status: Optional[str] = None,
        page: int = 1,
        per_page: Optional[int] = None,
    ) -> SessionPage:
        authorize(actor, Capability.LIST_SESSIONS)
        per_page = per_page or settings.default_page_size
        if page < 1 or not 1 <= per_page <= settings.max_page_size:
            raise ValidationException(
                f"page must be >= 1 and per_page between 1 and {settings.max_page_size}",
                details={"page": page, "per_page": per_page},
            )
        if status is not None and status not in {s.value for s in SessionStatus}:
            raise ValidationException(f"Unknown status '{status}'", details={"status": status})

        scope = self._scope(actor)
        if scope is None:
            return SessionPage(items=[], total=0, page=page, per_page=per_page)
        client_id, expert_id = scope
        items, total = self.session_repository.list_sessions(
            client_id=client_id,
            expert_id=expert_id,
            status=status,
            offset=(page - 1) * per_page,
            limit=per_page,
        )
        return SessionPage(items=items, total=total, page=page, per_page=per_page)

    @BaseService.measure_operation("get_upcoming_sessions")
    def get_upcoming_sessions(
        self, actor: Actor, limit: Optional[int] = None, now: Optional[datetime] = None
    ) -> List[ConsultationSession]:
        """Active sessions that have not started yet, soonest first."""
        authorize(actor, Capability.LIST_SESSIONS)
        limit = limit or settings.upcoming_sessions_limit
        scope = self._scope(actor)
        if scope is None:
            return []
        client_id, expert_id = scope
        current = now or datetime.now(timezone.utc)

        # Local dates may trail UTC by a day; filter exact instants below.
        from_date = current.date() - timedelta(days=1)
        candidates = self.session_repository.list_upcoming(
            from_date=from_date,
            client_id=client_id,
            expert_id=expert_id,
            limit=limit + 10,
        )
        return [s for s in candidates if s.start_instant() > current][:limit]

    def get_session(self, actor: Actor, session_id: str) -> ConsultationSession:
        session = self.session_repository.get_by_id(session_id)
        if session is None:
            raise NotFoundException("Session not found", details={"session_id": session_id})
        authorize(actor, Capability.VIEW_SESSION, session.participant_ids())
        return session
