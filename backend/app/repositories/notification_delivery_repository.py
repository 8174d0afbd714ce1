# backend/app/repositories/notification_delivery_repository.py
"""
One row per delivered notification, keyed by the outbox idempotency key.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session
import ulid

from app.models.event_outbox import NotificationDelivery

from .base_repository import BaseRepository


class NotificationDeliveryRepository(BaseRepository[NotificationDelivery]):
    def __init__(self, db: Session):
        super().__init__(db, NotificationDelivery)

    def record_delivery(
        self,
        event_type: str,
        idempotency_key: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> NotificationDelivery:
        """
        Insert the delivery row, or bump ``attempt_count`` when the key was
        already delivered. Returns the stored row.
        """
        payload = payload or {}
        insert_fn = pg_insert if self.dialect_name == "postgresql" else sqlite_insert
        stmt = (
            insert_fn(NotificationDelivery)
            .values(
                id=str(ulid.ULID()),
                event_type=event_type,
                idempotency_key=idempotency_key,
                payload=payload,
                attempt_count=1,
                delivered_at=datetime.now(timezone.utc),
            )
            .on_conflict_do_nothing(index_elements=["idempotency_key"])
        )
        inserted = self.db.execute(stmt).rowcount
        self.db.flush()

        row = self.get_by_idempotency_key(idempotency_key)
        if row is None:
            raise RuntimeError(f"Delivery row for {idempotency_key} missing after insert")
        if not inserted:
            row.touch(payload)
            self.db.flush()
        return row

    def get_by_idempotency_key(self, idempotency_key: str) -> Optional[NotificationDelivery]:
        return self.db.execute(
            select(NotificationDelivery).where(
                NotificationDelivery.idempotency_key == idempotency_key
            )
        ).scalar_one_or_none()
