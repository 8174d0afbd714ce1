"""
Database models for the scheduling engine.

- Account: identities and client credit balances
- Expert: weekly schedule, break rules and running statistics
- ConsultationSession: booked sessions and their lifecycle state
- LedgerEntry: payments and refunds tied to sessions
- EventOutbox / NotificationDelivery: outbound notification queue
"""

from .account import Account
from .consultation_session import (
    ACTIVE_STATUSES,
    CancelledBy,
    ConsultationSession,
    PaymentStatus,
    SessionStatus,
)
from .event_outbox import EventOutbox, EventOutboxStatus, NotificationDelivery
from .expert import Expert
from .ledger_entry import LedgerEntry, LedgerEntryStatus, LedgerEntryType, PaymentMethod

__all__ = [
    "ACTIVE_STATUSES",
    "Account",
    "CancelledBy",
    "ConsultationSession",
    "EventOutbox",
    "EventOutboxStatus",
    "Expert",
    "LedgerEntry",
    "LedgerEntryStatus",
    "LedgerEntryType",
    "NotificationDelivery",
    "PaymentMethod",
    "PaymentStatus",
    "SessionStatus",
]
