# backend/app/models/ledger_entry.py
"""
Ledger entries for monetary events tied to a session.

Amounts and the commission breakdown are written once. Only the settlement
status of a payment entry moves (pending -> completed / failed) when the
payment collaborator reports the outcome.
"""

from decimal import Decimal
from enum import Enum
import logging

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base

logger = logging.getLogger(__name__)


class LedgerEntryType(str, Enum):
    PAYMENT = "payment"
    REFUND = "refund"
    CREDIT_USAGE = "credit_usage"


class LedgerEntryStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentMethod(str, Enum):
    CARD = "card"
    CREDITS = "credits"
    MIXED = "mixed"
    ACCOUNT_CREDIT = "account_credit"


class LedgerEntry(Base):
    """A recorded payment or refund, carrying the session's commission breakdown."""

    __tablename__ = "ledger_entries"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    session_id = Column(
        String(26), ForeignKey("consultation_sessions.id"), nullable=False, index=True
    )
    account_id = Column(String(26), ForeignKey("accounts.id"), nullable=False, index=True)
    expert_id = Column(String(26), ForeignKey("experts.id"), nullable=False, index=True)

    entry_type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=LedgerEntryStatus.PENDING.value)
    payment_method = Column(String(20), nullable=False)

    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    platform_fee = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    expert_earnings = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    credits_applied = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    description = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    session = relationship("ConsultationSession", back_populates="ledger_entries")

    __table_args__ = (
        CheckConstraint(
            "entry_type IN ('payment', 'refund', 'credit_usage')",
            name="ck_ledger_entries_type",
        ),
        CheckConstraint(
            "status IN ('pending', 'completed', 'failed')",
            name="ck_ledger_entries_status",
        ),
        CheckConstraint("amount >= 0", name="ck_ledger_entries_amount_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<LedgerEntry {self.entry_type} {self.amount} {self.status} session={self.session_id}>"
