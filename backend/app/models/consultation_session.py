# backend/app/models/consultation_session.py
"""
Consultation session model.

A session is a booked, time-boxed meeting between a client and an expert.
Date and times are wall-clock values in the expert's timezone at booking.
Price and commission split are snapshotted at creation and never recomputed.

Sessions are never deleted; cancellation and refund are terminal statuses.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
import logging
from typing import Dict, FrozenSet, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.timezone_utils import local_to_utc
from ..database import Base

logger = logging.getLogger(__name__)

ALLOWED_DURATIONS = (30, 60, 90, 120)


class SessionStatus(str, Enum):
    """Session lifecycle statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


class CancelledBy(str, Enum):
    CLIENT = "client"
    EXPERT = "expert"
    ADMIN = "admin"


ACTIVE_STATUSES: FrozenSet[SessionStatus] = frozenset(
    {SessionStatus.PENDING, SessionStatus.CONFIRMED}
)
TERMINAL_STATUSES: FrozenSet[SessionStatus] = frozenset(
    {SessionStatus.COMPLETED, SessionStatus.CANCELLED, SessionStatus.REFUNDED}
)

ALLOWED_TRANSITIONS: Dict[SessionStatus, FrozenSet[SessionStatus]] = {
    SessionStatus.PENDING: frozenset(
        {SessionStatus.CONFIRMED, SessionStatus.CANCELLED, SessionStatus.REFUNDED}
    ),
    SessionStatus.CONFIRMED: frozenset(
        {SessionStatus.COMPLETED, SessionStatus.CANCELLED, SessionStatus.REFUNDED}
    ),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.CANCELLED: frozenset(),
    SessionStatus.REFUNDED: frozenset(),
}

_ACTIVE_SQL = "status IN ('pending', 'confirmed')"


def can_transition(current: str, target: SessionStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(SessionStatus(current), frozenset())


class ConsultationSession(Base):
    """
    A booked consultation between a client and an expert.

    The (expert_id, scheduled_date, scheduled_time) triple is unique among
    active sessions; the partial index below enforces it in storage.
    """

    __tablename__ = "consultation_sessions"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))

    client_id = Column(String(26), ForeignKey("accounts.id"), nullable=False, index=True)
    expert_id = Column(String(26), ForeignKey("experts.id"), nullable=False, index=True)

    scheduled_date = Column(Date, nullable=False, index=True)
    scheduled_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    timezone = Column(String(64), nullable=False, default="UTC")

    # Pricing snapshot
    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    commission_rate = Column(Numeric(5, 4), nullable=False)
    platform_commission = Column(Numeric(10, 2), nullable=False)
    expert_commission = Column(Numeric(10, 2), nullable=False)
    user_credits_used = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    amount_due = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))

    status = Column(String(20), nullable=False, default=SessionStatus.PENDING.value, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)

    notes = Column(Text, nullable=True)
    meeting_link = Column(String(500), nullable=True)
    reminder_sent = Column(Boolean, nullable=False, default=False)

    # Rating
    rating = Column(Integer, nullable=True)
    review = Column(Text, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    # Cancellation / refund tracking
    cancel_reason = Column(Text, nullable=True)
    cancelled_by = Column(String(20), nullable=True)
    cancelled_by_id = Column(String(26), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    refund_amount = Column(Numeric(10, 2), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)

    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    payment_failed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    client = relationship("Account", foreign_keys=[client_id])
    expert = relationship("Expert", back_populates="sessions")
    ledger_entries = relationship(
        "LedgerEntry", back_populates="session", order_by="LedgerEntry.created_at"
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled', 'refunded')",
            name="ck_sessions_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refunded', 'failed')",
            name="ck_sessions_payment_status",
        ),
        CheckConstraint(
            "duration_minutes IN (30, 60, 90, 120)",
            name="ck_sessions_duration",
        ),
        CheckConstraint(
            "rating IS NULL OR (rating >= 1 AND rating <= 5)",
            name="ck_sessions_rating_range",
        ),
        CheckConstraint("price >= 0", name="ck_sessions_price_non_negative"),
    )

    @property
    def is_active(self) -> bool:
        return self.status in {s.value for s in ACTIVE_STATUSES}

    @property
    def is_terminal(self) -> bool:
        return self.status in {s.value for s in TERMINAL_STATUSES}

    def start_instant(self) -> datetime:
        """Absolute UTC start of the session."""
        return local_to_utc(self.scheduled_date, self.scheduled_time, self.timezone)

    def end_instant(self) -> datetime:
        return self.start_instant() + timedelta(minutes=self.duration_minutes)

    def participant_ids(self) -> set:
        """Account ids of the client and the expert."""
        ids = {self.client_id}
        if self.expert is not None:
            ids.add(self.expert.account_id)
        return ids

    def mark_confirmed(self) -> None:
        self.status = SessionStatus.CONFIRMED.value
        self.payment_status = PaymentStatus.PAID.value
        self.confirmed_at = datetime.now(timezone.utc)
        logger.info(f"Session {self.id} confirmed")

    def mark_completed(self) -> None:
        self.status = SessionStatus.COMPLETED.value
        self.completed_at = datetime.now(timezone.utc)
        logger.info(f"Session {self.id} marked as completed")

    def mark_cancelled(
        self,
        cancelled_by: CancelledBy,
        cancelled_by_id: str,
        reason: Optional[str],
        refund_amount: Decimal,
        at: Optional[datetime] = None,
    ) -> None:
        self.status = SessionStatus.CANCELLED.value
        self.cancelled_by = cancelled_by.value
        self.cancelled_by_id = cancelled_by_id
        self.cancel_reason = reason
        self.cancelled_at = at or datetime.now(timezone.utc)
        self.refund_amount = refund_amount
        logger.info(f"Session {self.id} cancelled by {cancelled_by.value} {cancelled_by_id}")

    def mark_refunded(self, refund_amount: Decimal) -> None:
        self.status = SessionStatus.REFUNDED.value
        self.payment_status = PaymentStatus.REFUNDED.value
        self.refund_amount = refund_amount
        self.refunded_at = datetime.now(timezone.utc)
        logger.info(f"Session {self.id} refunded ({refund_amount})")

    def __repr__(self) -> str:
        return (
            f"<ConsultationSession {self.id} expert={self.expert_id} "
            f"{self.scheduled_date} {self.scheduled_time} {self.status}>"
        )


# Double-booking guard: one active session per (expert, date, start time).
Index(
    "uq_sessions_active_slot",
    ConsultationSession.expert_id,
    ConsultationSession.scheduled_date,
    ConsultationSession.scheduled_time,
    unique=True,
    postgresql_where=text(_ACTIVE_SQL),
    sqlite_where=text(_ACTIVE_SQL),
)

Index(
    "ix_sessions_reminder_scan",
    ConsultationSession.status,
    ConsultationSession.reminder_sent,
    ConsultationSession.scheduled_date,
)
