# backend/app/tasks/beat_schedule.py
"""
Celery Beat schedule configuration.

This module defines the periodic task schedule for the application.
Tasks are scheduled using crontab expressions for precise timing control.
"""

from datetime import timedelta
from typing import Any, Dict

from celery.schedules import crontab

# Main beat schedule configuration
CELERYBEAT_SCHEDULE: Dict[str, Dict[str, Any]] = {
    # Push pending notification outbox rows to delivery workers
    "dispatch-notification-outbox": {
        "task": "outbox.dispatch_pending",
        "schedule": timedelta(seconds=30),
        "options": {"queue": "notifications", "priority": 7},
    },
    # Complete confirmed sessions whose end time has passed
    "complete-elapsed-sessions": {
        "task": "sessions.complete_elapsed",
        "schedule": crontab(minute="*/30"),
        "options": {"queue": "sessions", "priority": 5},
    },
    # Reminders for sessions starting within the reminder lead window
    "send-session-reminders": {
        "task": "sessions.send_reminders",
        "schedule": crontab(minute=0),  # Hourly
        "options": {"queue": "sessions", "priority": 6},
    },
    # Recompute expert statistics from session history
    "reconcile-expert-statistics": {
        "task": "sessions.reconcile_expert_statistics",
        "schedule": crontab(hour=0, minute=0),  # Daily at midnight UTC
        "options": {"queue": "sessions", "priority": 2},
    },
}


def get_beat_schedule(environment: str = "production") -> Dict[str, Dict[str, Any]]:
    """
    Get the beat schedule for a specific environment.

    Development dispatches the outbox more often so notifications show up
    quickly while testing by hand.
    """
    schedule = {name: dict(entry) for name, entry in CELERYBEAT_SCHEDULE.items()}
    if environment == "development":
        schedule["dispatch-notification-outbox"]["schedule"] = timedelta(seconds=10)
    return schedule
