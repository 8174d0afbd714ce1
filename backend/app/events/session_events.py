"""Session domain events published to the notification outbox."""
from dataclasses import asdict, dataclass
from typing import Any, ClassVar, Dict, Optional


@dataclass
class SessionEvent:
    """Base for events addressed to one recipient about one session."""

    EVENT_TYPE: ClassVar[str] = "session.event"

    session_id: str
    recipient_id: str

    @property
    def event_type(self) -> str:
        return self.EVENT_TYPE

    @property
    def idempotency_key(self) -> str:
        return f"{self.EVENT_TYPE}:{self.session_id}:{self.recipient_id}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SessionRequested(SessionEvent):
    """Sent to the expert when a client books a session."""

    EVENT_TYPE: ClassVar[str] = "session.requested"

    client_name: str = ""
    scheduled_date: str = ""
    scheduled_time: str = ""
    duration_minutes: int = 0


@dataclass
class SessionBooked(SessionEvent):
    """Booking confirmation email to the client."""

    EVENT_TYPE: ClassVar[str] = "session.booked"

    expert_name: str = ""
    scheduled_date: str = ""
    scheduled_time: str = ""
    price: str = ""
    amount_due: str = ""
    currency: str = ""


@dataclass
class SessionConfirmed(SessionEvent):
    """Payment captured; the session is on."""

    EVENT_TYPE: ClassVar[str] = "session.confirmed"

    counterpart_name: str = ""
    scheduled_date: str = ""
    scheduled_time: str = ""


@dataclass
class SessionCompleted(SessionEvent):
    """Asks the client to rate a finished session."""

    EVENT_TYPE: ClassVar[str] = "session.completed"

    expert_name: str = ""
    scheduled_date: str = ""


@dataclass
class SessionCancelled(SessionEvent):
    """Tells the non-cancelling party about a cancellation."""

    EVENT_TYPE: ClassVar[str] = "session.cancelled"

    cancelled_by: str = ""
    cancelled_by_name: str = ""
    scheduled_date: str = ""
    scheduled_time: str = ""
    reason: Optional[str] = None
    refund_amount: str = "0.00"


@dataclass
class SessionReviewed(SessionEvent):
    """Tells the expert about a new rating."""

    EVENT_TYPE: ClassVar[str] = "session.reviewed"

    client_name: str = ""
    rating: int = 0


@dataclass
class SessionReminder(SessionEvent):
    """Pre-session reminder for either party."""

    EVENT_TYPE: ClassVar[str] = "session.reminder"

    counterpart_name: str = ""
    scheduled_date: str = ""
    scheduled_time: str = ""
    lead_hours: int = 24


@dataclass
class SessionRefunded(SessionEvent):
    EVENT_TYPE: ClassVar[str] = "session.refunded"

    refund_amount: str = "0.00"
    currency: str = ""


@dataclass
class SessionPaymentFailed(SessionEvent):
    EVENT_TYPE: ClassVar[str] = "session.payment_failed"

    scheduled_date: str = ""
    scheduled_time: str = ""
