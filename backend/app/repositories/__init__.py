"""Data access layer."""

from .account_repository import AccountRepository
from .base_repository import BaseRepository
from .event_outbox_repository import EventOutboxRepository
from .expert_repository import ExpertRepository
from .factory import RepositoryFactory
from .ledger_repository import LedgerRepository
from .notification_delivery_repository import NotificationDeliveryRepository
from .session_repository import SessionRepository

__all__ = [
    "AccountRepository",
    "BaseRepository",
    "EventOutboxRepository",
    "ExpertRepository",
    "LedgerRepository",
    "NotificationDeliveryRepository",
    "RepositoryFactory",
    "SessionRepository",
]
