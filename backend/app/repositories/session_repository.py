# backend/app/repositories/session_repository.py
"""
Consultation Session Repository.

Implements the data access the booking and lifecycle services need:
- Active-slot lookups and booked intervals for availability
- Role-scoped listings with pagination
- Scans used by the periodic reminder / auto-complete / reconciliation jobs
"""

from collections import defaultdict
from datetime import date, time
from decimal import Decimal
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.exceptions import RepositoryException
from ..models.consultation_session import (
    ACTIVE_STATUSES,
    CancelledBy,
    ConsultationSession,
    SessionStatus,
)
from ..models.expert import Expert
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

BookedInterval = Tuple[time, int]

_ACTIVE_VALUES = [status.value for status in ACTIVE_STATUSES]


class SessionRepository(BaseRepository[ConsultationSession]):
    def __init__(self, db: Session):
        super().__init__(db, ConsultationSession)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(ConsultationSession.expert).joinedload(Expert.account),
            joinedload(ConsultationSession.client),
        )

    def add(self, session: ConsultationSession) -> ConsultationSession:
        """
        Stage and flush a new session.

        IntegrityError from the active-slot unique index is left to the
        caller so it can be reported as a booking conflict.
        """
        self.db.add(session)
        self.db.flush()
        return session

    def get_for_update(self, session_id: str) -> Optional[ConsultationSession]:
        try:
            query = self._apply_eager_loading(
                self.db.query(ConsultationSession).filter(ConsultationSession.id == session_id)
            )
            if self.dialect_name == "postgresql":
                query = query.with_for_update(of=ConsultationSession)
            return query.populate_existing().first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking session {session_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock session: {str(e)}")

    # ------------------------------------------------------------------ slots
    def find_active_at(
        self, expert_id: str, scheduled_date: date, scheduled_time: time
    ) -> Optional[ConsultationSession]:
        return (
            self.db.query(ConsultationSession)
            .filter(
                ConsultationSession.expert_id == expert_id,
                ConsultationSession.scheduled_date == scheduled_date,
                ConsultationSession.scheduled_time == scheduled_time,
                ConsultationSession.status.in_(_ACTIVE_VALUES),
            )
            .first()
        )

    def get_booked_intervals(self, expert_id: str, on_date: date) -> List[BookedInterval]:
        """(start, duration_minutes) of every active session on ``on_date``."""
        return self.get_booked_intervals_between(expert_id, on_date, on_date).get(on_date, [])

    def get_booked_intervals_between(
        self, expert_id: str, start_date: date, end_date: date
    ) -> Dict[date, List[BookedInterval]]:
        try:
            rows = (
                self.db.query(
                    ConsultationSession.scheduled_date,
                    ConsultationSession.scheduled_time,
                    ConsultationSession.duration_minutes,
                )
                .filter(
                    ConsultationSession.expert_id == expert_id,
                    ConsultationSession.scheduled_date >= start_date,
                    ConsultationSession.scheduled_date <= end_date,
                    ConsultationSession.status.in_(_ACTIVE_VALUES),
                )
                .order_by(ConsultationSession.scheduled_date, ConsultationSession.scheduled_time)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading booked intervals for {expert_id}: {str(e)}")
            raise RepositoryException(f"Failed to load booked intervals: {str(e)}")

        by_date: Dict[date, List[BookedInterval]] = defaultdict(list)
        for scheduled_date, scheduled_time, duration in rows:
            by_date[scheduled_date].append((scheduled_time, duration))
        return dict(by_date)

    # --------------------------------------------------------------- listings
    def _scoped_query(
        self, client_id: Optional[str] = None, expert_id: Optional[str] = None
    ) -> Query:
        query = self.db.query(ConsultationSession)
        if client_id is not None:
            query = query.filter(ConsultationSession.client_id == client_id)
        if expert_id is not None:
            query = query.filter(ConsultationSession.expert_id == expert_id)
        return query

    def list_sessions(
        self,
        *,
        client_id: Optional[str] = None,
        expert_id: Optional[str] = None,
        status: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[ConsultationSession], int]:
        """Newest first; returns (page, total)."""
        query = self._scoped_query(client_id, expert_id)
        if status:
            query = query.filter(ConsultationSession.status == status)
        total = query.count()
        items = (
            self._apply_eager_loading(query)
            .order_by(
                ConsultationSession.scheduled_date.desc(),
                ConsultationSession.scheduled_time.desc(),
            )
            .offset(offset)
            .limit(limit)
            .all()
        )
        return items, total

    def list_upcoming(
        self,
        *,
        from_date: date,
        client_id: Optional[str] = None,
        expert_id: Optional[str] = None,
        limit: int = 5,
    ) -> List[ConsultationSession]:
        return (
            self._apply_eager_loading(self._scoped_query(client_id, expert_id))
            .filter(
                ConsultationSession.scheduled_date >= from_date,
                ConsultationSession.status.in_(_ACTIVE_VALUES),
            )
            .order_by(
                ConsultationSession.scheduled_date.asc(),
                ConsultationSession.scheduled_time.asc(),
            )
            .limit(limit)
            .all()
        )

    # ------------------------------------------------------------------ jobs
    def find_reminder_candidates(
        self, start_date: date, end_date: date
    ) -> List[ConsultationSession]:
        """Active sessions in the date range that have not had a reminder."""
        return (
            self._apply_eager_loading(self.db.query(ConsultationSession))
            .filter(
                ConsultationSession.status.in_(_ACTIVE_VALUES),
                ConsultationSession.reminder_sent.is_(False),
                ConsultationSession.scheduled_date >= start_date,
                ConsultationSession.scheduled_date <= end_date,
            )
            .all()
        )

    def claim_reminder(self, session_id: str) -> bool:
        """Flip reminder_sent once; False when another worker got there first."""
        result = self.db.execute(
            update(ConsultationSession)
            .where(
                ConsultationSession.id == session_id,
                ConsultationSession.reminder_sent.is_(False),
            )
            .values(reminder_sent=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def find_confirmed_through(self, through_date: date) -> List[ConsultationSession]:
        """Confirmed sessions scheduled on or before ``through_date``."""
        return (
            self.db.query(ConsultationSession)
            .filter(
                ConsultationSession.status == SessionStatus.CONFIRMED.value,
                ConsultationSession.scheduled_date <= through_date,
            )
            .order_by(ConsultationSession.scheduled_date, ConsultationSession.scheduled_time)
            .all()
        )

    def completed_totals_by_expert(
        self, expert_ids: Sequence[str]
    ) -> Dict[str, Tuple[int, Decimal]]:
        """expert_id -> (completed count, sum of snapshotted expert commission)."""
        if not expert_ids:
            return {}
        rows = (
            self.db.query(
                ConsultationSession.expert_id,
                func.count(ConsultationSession.id),
                func.coalesce(func.sum(ConsultationSession.expert_commission), 0),
            )
            .filter(
                ConsultationSession.expert_id.in_(list(expert_ids)),
                ConsultationSession.status == SessionStatus.COMPLETED.value,
            )
            .group_by(ConsultationSession.expert_id)
            .all()
        )
        return {
            expert_id: (int(count), Decimal(str(total)).quantize(Decimal("0.01")))
            for expert_id, count, total in rows
        }

    def rating_totals_by_expert(self, expert_ids: Sequence[str]) -> Dict[str, Tuple[int, float]]:
        """expert_id -> (rated session count, mean rating)."""
        if not expert_ids:
            return {}
        rows = (
            self.db.query(
                ConsultationSession.expert_id,
                func.count(ConsultationSession.rating),
                func.avg(ConsultationSession.rating),
            )
            .filter(
                ConsultationSession.expert_id.in_(list(expert_ids)),
                ConsultationSession.rating.isnot(None),
            )
            .group_by(ConsultationSession.expert_id)
            .all()
        )
        return {expert_id: (int(count), float(avg or 0.0)) for expert_id, count, avg in rows}

    def client_cancellation_counts_by_expert(self, expert_ids: Sequence[str]) -> Dict[str, int]:
        """expert_id -> sessions cancelled by the client."""
        if not expert_ids:
            return {}
        rows = (
            self.db.query(ConsultationSession.expert_id, func.count(ConsultationSession.id))
            .filter(
                ConsultationSession.expert_id.in_(list(expert_ids)),
                ConsultationSession.status == SessionStatus.CANCELLED.value,
                ConsultationSession.cancelled_by == CancelledBy.CLIENT.value,
            )
            .group_by(ConsultationSession.expert_id)
            .all()
        )
        return {expert_id: int(count) for expert_id, count in rows}
