"""Session domain events. The outbox publisher lives in ``app.events.publisher``."""

from app.events.session_events import (
    SessionBooked,
    SessionCancelled,
    SessionCompleted,
    SessionConfirmed,
    SessionEvent,
    SessionPaymentFailed,
    SessionRefunded,
    SessionReminder,
    SessionRequested,
    SessionReviewed,
)

__all__ = [
    "SessionBooked",
    "SessionCancelled",
    "SessionCompleted",
    "SessionConfirmed",
    "SessionEvent",
    "SessionPaymentFailed",
    "SessionRefunded",
    "SessionReminder",
    "SessionRequested",
    "SessionReviewed",
]
