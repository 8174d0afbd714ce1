# backend/app/tasks/session_tasks.py
"""
Periodic session maintenance tasks.

Each task opens its own database session and delegates to SessionLifecycle;
all of them are safe to run repeatedly.
"""

from contextlib import contextmanager
from typing import Iterator

from celery.utils.log import get_task_logger
from sqlalchemy.orm import Session

from app.database import SessionLocal
from app.services.session_lifecycle import SessionLifecycle
from app.tasks.celery_app import celery_app

logger = get_task_logger(__name__)


@contextmanager
def _lifecycle_scope() -> Iterator[SessionLifecycle]:
    session: Session = SessionLocal()
    try:
        yield SessionLifecycle(session)
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@celery_app.task(name="sessions.complete_elapsed", max_retries=0)
def complete_elapsed_sessions() -> int:
    """Mark confirmed sessions whose end time has passed as completed."""
    with _lifecycle_scope() as lifecycle:
        completed = lifecycle.complete_elapsed_sessions()
    logger.info("Auto-complete run finished: %s sessions", completed)
    return completed


@celery_app.task(name="sessions.send_reminders", max_retries=0)
def send_session_reminders() -> int:
    with _lifecycle_scope() as lifecycle:
        sent = lifecycle.send_due_reminders()
    logger.info("Reminder run finished: %s sessions", sent)
    return sent


@celery_app.task(name="sessions.reconcile_expert_statistics", max_retries=0)
def reconcile_expert_statistics() -> int:
    """Recompute expert counters from history; returns experts corrected."""
    with _lifecycle_scope() as lifecycle:
        corrected = lifecycle.reconcile_expert_statistics()
    if corrected:
        logger.warning("Reconciliation corrected statistics for %s experts", corrected)
    return corrected
