# backend/app/tasks/__init__.py
"""
Celery tasks package.

- Notification outbox dispatch and delivery
- Periodic session maintenance (auto-complete, reminders, reconciliation)
"""

from app.tasks.celery_app import BaseTask, celery_app
from app.tasks.notification_tasks import deliver_event, dispatch_pending
from app.tasks.session_tasks import (
    complete_elapsed_sessions,
    reconcile_expert_statistics,
    send_session_reminders,
)

__all__ = [
    "BaseTask",
    "celery_app",
    "complete_elapsed_sessions",
    "deliver_event",
    "dispatch_pending",
    "reconcile_expert_statistics",
    "send_session_reminders",
]
