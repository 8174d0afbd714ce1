# backend/app/tasks/notification_tasks.py
"""
Delivery of session notifications written to the event outbox.

``outbox.dispatch_pending`` runs on the beat schedule and fans due rows out
to ``outbox.deliver_event``, one task per row. A failed delivery is recorded
on the row with the next attempt time; after MAX_DELIVERY_ATTEMPTS the row is
marked FAILED and left for inspection.
"""

from contextlib import contextmanager
from time import monotonic
from typing import Any, Iterator, Optional

from celery.app.task import Task
from celery.utils.log import get_task_logger
from sqlalchemy.orm import Session

from app.core.config import settings
from app.database import SessionLocal
from app.models.event_outbox import EventOutbox, EventOutboxStatus
from app.monitoring.prometheus_metrics import PrometheusMetrics
from app.repositories.event_outbox_repository import EventOutboxRepository
from app.services.notification_provider import (
    NotificationProvider,
    NotificationProviderTemporaryError,
)
from app.tasks.celery_app import celery_app

logger = get_task_logger(__name__)

MAX_DELIVERY_ATTEMPTS = 5
# 30s, 2m, 10m, 30m, 2h
BACKOFF_SECONDS = [30, 120, 600, 1800, 7200]


def _next_backoff(attempt_number: int) -> int:
    """Delay before the attempt after ``attempt_number`` (1-indexed, capped)."""
    index = max(0, min(attempt_number - 1, len(BACKOFF_SECONDS) - 1))
    return BACKOFF_SECONDS[index]


@contextmanager
def _outbox_scope() -> Iterator[EventOutboxRepository]:
    session: Session = SessionLocal()
    try:
        yield EventOutboxRepository(session)
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@celery_app.task(name="outbox.dispatch_pending", max_retries=0)
def dispatch_pending() -> int:
    """Queue a delivery task for every due outbox row; returns how many were queued."""
    with _outbox_scope() as repo:
        due = repo.fetch_pending(limit=settings.outbox_dispatch_batch_size)
        event_ids = [event.id for event in due]

    for event_id in event_ids:
        deliver_event.apply_async((event_id,), queue="notifications")
    if event_ids:
        logger.info("Queued %s session notifications for delivery", len(event_ids))
    return len(event_ids)


def _send(provider: NotificationProvider, event: EventOutbox) -> None:
    started = monotonic()
    try:
        provider.send(
            event_type=event.event_type,
            payload=event.payload,
            idempotency_key=event.idempotency_key,
        )
    finally:
        PrometheusMetrics.observe_notification_dispatch(event.event_type, monotonic() - started)


@celery_app.task(
    name="outbox.deliver_event",
    bind=True,
    max_retries=MAX_DELIVERY_ATTEMPTS,
    default_retry_delay=BACKOFF_SECONDS[0],
)
def deliver_event(self: "Task[Any, Any]", event_id: str) -> Optional[str]:
    """
    Hand one outbox row to the notification provider.

    Returns the event id once delivered, or None when the row is missing or
    no longer pending. Failures are persisted before the task retries.
    """
    session: Session = SessionLocal()
    try:
        repo = EventOutboxRepository(session)
        event = repo.get_by_id(event_id)
        if event is None:
            logger.warning("Outbox event %s not found", event_id)
            return None
        if event.status != EventOutboxStatus.PENDING.value:
            logger.info("Outbox event %s is %s; nothing to deliver", event_id, event.status)
            return None

        attempt = event.attempt_count + 1
        PrometheusMetrics.record_notification_attempt(event.event_type)
        try:
            _send(NotificationProvider(), event)
        except Exception as exc:
            backoff = _next_backoff(attempt)
            terminal = attempt >= MAX_DELIVERY_ATTEMPTS
            repo.mark_failed(
                event.id,
                attempt_count=attempt,
                backoff_seconds=backoff,
                error=str(exc),
                terminal=terminal,
            )
            session.commit()

            transient = isinstance(exc, NotificationProviderTemporaryError)
            if terminal:
                PrometheusMetrics.record_notification_outcome(event.event_type, "failed")
                logger.error(
                    "Giving up on %s for session %s after %s attempts: %s",
                    event.event_type,
                    event.aggregate_id,
                    attempt,
                    exc,
                )
                raise
            log = logger.warning if transient else logger.exception
            log("Delivery of outbox event %s failed; retrying in %ss", event.id, backoff)
            raise self.retry(countdown=backoff, exc=exc)

        repo.mark_sent(event.id, attempt)
        session.commit()
        PrometheusMetrics.record_notification_outcome(event.event_type, "sent")
        logger.info(
            "Delivered %s for session %s on attempt %s",
            event.event_type,
            event.aggregate_id,
            attempt,
        )
        return str(event.id)
    finally:
        session.close()
