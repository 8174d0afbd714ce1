# backend/app/repositories/event_outbox_repository.py
"""
Outbox rows for session notifications.

Rows are written by the EventPublisher after a session transaction commits
and consumed by the ``outbox.*`` Celery tasks.
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.orm import Session
import ulid

from app.models.event_outbox import EventOutbox, EventOutboxStatus

from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 1000


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class EventOutboxRepository(BaseRepository[EventOutbox]):
    def __init__(self, db: Session):
        super().__init__(db, EventOutbox)

    def enqueue(
        self,
        event_type: str,
        aggregate_id: str,
        payload: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> EventOutbox:
        """
        Insert a pending row, ignoring the insert when the key already exists.

        Always returns the row stored under the key, so publishing the same
        event twice yields the original row.
        """
        now = _now_utc()
        key = idempotency_key or f"{event_type}:{aggregate_id}:{int(now.timestamp())}"
        row = {
            "id": str(ulid.ULID()),
            "event_type": event_type,
            "aggregate_id": aggregate_id,
            "payload": payload or {},
            "idempotency_key": key,
            "status": EventOutboxStatus.PENDING.value,
            "attempt_count": 0,
            "next_attempt_at": now,
        }

        dialect = self.dialect_name
        if dialect == "postgresql":
            stmt = pg_insert(EventOutbox).values(**row).on_conflict_do_nothing(
                index_elements=["idempotency_key"]
            )
        elif dialect == "sqlite":
            stmt = insert(EventOutbox).values(**row).prefix_with("OR IGNORE")
        else:
            stmt = insert(EventOutbox).values(**row)
        self.db.execute(stmt)
        self.db.flush()

        return self.db.execute(
            select(EventOutbox).where(EventOutbox.idempotency_key == key)
        ).scalar_one()

    def get_by_id(self, event_id: str, load_relationships: bool = False) -> Optional[EventOutbox]:
        return self.db.get(EventOutbox, event_id)

    def fetch_pending(self, limit: int = 200) -> List[EventOutbox]:
        """Pending rows whose next attempt is due, oldest first."""
        stmt = (
            select(EventOutbox)
            .where(
                EventOutbox.status == EventOutboxStatus.PENDING.value,
                EventOutbox.next_attempt_at <= _now_utc(),
            )
            .order_by(EventOutbox.next_attempt_at, EventOutbox.id)
            .limit(limit)
        )
        if self.dialect_name == "postgresql":
            # Concurrent dispatchers each take a disjoint batch.
            stmt = stmt.with_for_update(skip_locked=True)
        return list(self.db.execute(stmt).scalars())

    def list_for_aggregate(self, aggregate_id: str) -> List[EventOutbox]:
        """Every row written for one session, in the order it was written."""
        stmt = (
            select(EventOutbox)
            .where(EventOutbox.aggregate_id == aggregate_id)
            .order_by(EventOutbox.created_at, EventOutbox.id)
        )
        return list(self.db.execute(stmt).scalars())

    def mark_sent(self, event_id: str, attempt_count: int) -> None:
        self._set(
            event_id,
            status=EventOutboxStatus.SENT.value,
            attempt_count=attempt_count,
            last_error=None,
        )

    def mark_failed(
        self,
        event_id: str,
        *,
        attempt_count: int,
        backoff_seconds: int,
        error: Optional[str] = None,
        terminal: bool = False,
    ) -> None:
        """Record a failed attempt and when to try again; terminal rows become FAILED."""
        if terminal:
            status, delay = EventOutboxStatus.FAILED.value, 0
        else:
            status, delay = EventOutboxStatus.PENDING.value, max(backoff_seconds, 1)
        self._set(
            event_id,
            status=status,
            attempt_count=attempt_count,
            last_error=error[:MAX_ERROR_LENGTH] if error else None,
            delay_seconds=delay,
        )

    def _set(self, event_id: str, *, delay_seconds: int = 0, **values: Any) -> None:
        now = _now_utc()
        self.db.execute(
            update(EventOutbox)
            .where(EventOutbox.id == event_id)
            .values(
                next_attempt_at=now + timedelta(seconds=delay_seconds),
                updated_at=now,
                **values,
            )
        )
        self.db.flush()
