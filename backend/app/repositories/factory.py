# backend/app/repositories/factory.py
"""
Repository Factory.

Centralizes creation of repository instances so services receive
consistently initialised data access objects.
"""

from sqlalchemy.orm import Session

from .account_repository import AccountRepository
from .event_outbox_repository import EventOutboxRepository
from .expert_repository import ExpertRepository
from .ledger_repository import LedgerRepository
from .session_repository import SessionRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_expert_repository(db: Session) -> ExpertRepository:
        return ExpertRepository(db)

    @staticmethod
    def create_session_repository(db: Session) -> SessionRepository:
        return SessionRepository(db)

    @staticmethod
    def create_account_repository(db: Session) -> AccountRepository:
        return AccountRepository(db)

    @staticmethod
    def create_ledger_repository(db: Session) -> LedgerRepository:
        return LedgerRepository(db)

    @staticmethod
    def create_event_outbox_repository(db: Session) -> EventOutboxRepository:
        return EventOutboxRepository(db)
