"""Publishes session events to the notification outbox."""
import logging
from typing import Iterable

from sqlalchemy.orm import Session

from app.events.session_events import SessionEvent
from app.repositories.event_outbox_repository import EventOutboxRepository
from app.services.notification_templates import render

logger = logging.getLogger(__name__)


class EventPublisher:
    """
    Writes one outbox row per event and commits it on its own.

    Call after the originating transaction has committed. A failure for one
    event is logged and does not stop the others or reach the caller.
    """

    def __init__(self, db: Session):
        self.db = db
        self.outbox = EventOutboxRepository(db)

    def publish(self, event: SessionEvent) -> bool:
        try:
            self.outbox.enqueue(
                event_type=event.event_type,
                aggregate_id=event.session_id,
                payload=render(event),
                idempotency_key=event.idempotency_key,
            )
            self.db.commit()
            return True
        except Exception as exc:
            self.db.rollback()
            logger.error(
                "Failed to enqueue %s for session %s: %s",
                event.event_type,
                event.session_id,
                exc,
            )
            return False

    def publish_all(self, events: Iterable[SessionEvent]) -> int:
        return sum(1 for event in events if self.publish(event))
