from dataclasses import dataclass
from typing import Any, Dict, Optional

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


@dataclass(frozen=True)
class NotificationTemplate:
    category: str
    type: str
    title: str
    body_template: str
    url_template: Optional[str] = None
    email_subject_template: Optional[str] = None


EXPERT_SESSION_REQUESTED = NotificationTemplate(
    category="session_updates",
    type="session_requested",
    title="New Session Request",
    body_template="{client_name} booked a {duration_minutes}-minute session on {scheduled_date} at {scheduled_time}",
    url_template="/expert/sessions/{session_id}",
    email_subject_template="New session request from {client_name}",
)

CLIENT_SESSION_BOOKED = NotificationTemplate(
    category="session_updates",
    type="session_booked",
    title="Session Booked",
    body_template="Your session with {expert_name} on {scheduled_date} at {scheduled_time} is booked. Amount due: {amount_due} {currency}",
    url_template="/sessions/{session_id}",
    email_subject_template="Booking confirmation: {expert_name} on {scheduled_date}",
)

SESSION_CONFIRMED = NotificationTemplate(
    category="session_updates",
    type="session_confirmed",
    title="Session Confirmed",
    body_template="Your session with {counterpart_name} on {scheduled_date} at {scheduled_time} is confirmed",
    url_template="/sessions/{session_id}",
    email_subject_template="Confirmed: session on {scheduled_date}",
)

CLIENT_RATE_SESSION = NotificationTemplate(
    category="session_updates",
    type="rate_session",
    title="How was your session?",
    body_template="Rate your session with {expert_name} on {scheduled_date}",
    url_template="/sessions/{session_id}/rate",
)

SESSION_CANCELLED = NotificationTemplate(
    category="session_updates",
    type="session_cancelled",
    title="Session Cancelled",
    body_template="{cancelled_by_name} cancelled the session on {scheduled_date} at {scheduled_time}",
    url_template="/sessions/{session_id}",
    email_subject_template="Session cancelled: {scheduled_date}",
)

EXPERT_NEW_REVIEW = NotificationTemplate(
    category="session_updates",
    type="new_review",
    title="New Review!",
    body_template="{client_name} left a {rating}-star review",
    url_template="/expert/reviews",
)

SESSION_REMINDER = NotificationTemplate(
    category="session_updates",
    type="session_reminder",
    title="Upcoming Session",
    body_template="Reminder: session with {counterpart_name} on {scheduled_date} at {scheduled_time}",
    url_template="/sessions/{session_id}",
    email_subject_template="Reminder: session on {scheduled_date} at {scheduled_time}",
)

CLIENT_SESSION_REFUNDED = NotificationTemplate(
    category="payments",
    type="session_refunded",
    title="Refund Issued",
    body_template="{refund_amount} {currency} has been refunded for your session",
    url_template="/sessions/{session_id}",
    email_subject_template="Your refund of {refund_amount} {currency}",
)

CLIENT_PAYMENT_FAILED = NotificationTemplate(
    category="payments",
    type="payment_failed",
    title="Payment Failed",
    body_template="We couldn't process payment for your session on {scheduled_date} at {scheduled_time}",
    url_template="/sessions/{session_id}",
    email_subject_template="Payment failed for your session on {scheduled_date}",
)

TEMPLATES: Dict[str, NotificationTemplate] = {
    SessionRequested.EVENT_TYPE: EXPERT_SESSION_REQUESTED,
    SessionBooked.EVENT_TYPE: CLIENT_SESSION_BOOKED,
    SessionConfirmed.EVENT_TYPE: SESSION_CONFIRMED,
    SessionCompleted.EVENT_TYPE: CLIENT_RATE_SESSION,
    SessionCancelled.EVENT_TYPE: SESSION_CANCELLED,
    SessionReviewed.EVENT_TYPE: EXPERT_NEW_REVIEW,
    SessionReminder.EVENT_TYPE: SESSION_REMINDER,
    SessionRefunded.EVENT_TYPE: CLIENT_SESSION_REFUNDED,
    SessionPaymentFailed.EVENT_TYPE: CLIENT_PAYMENT_FAILED,
}


def render(event: SessionEvent) -> Dict[str, Any]:
    """Build the outbox payload for ``event`` from its template."""
    template = TEMPLATES[event.event_type]
    context = event.to_dict()
    return {
        "recipient_id": event.recipient_id,
        "category": template.category,
        "type": template.type,
        "title": template.title,
        "body": template.body_template.format(**context),
        "url": template.url_template.format(**context) if template.url_template else None,
        "email_subject": (
            template.email_subject_template.format(**context)
            if template.email_subject_template
            else None
        ),
        "data": context,
    }
