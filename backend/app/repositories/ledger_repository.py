# backend/app/repositories/ledger_repository.py
"""Ledger entry persistence."""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.ledger_entry import LedgerEntry, LedgerEntryStatus, LedgerEntryType
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class LedgerRepository(BaseRepository[LedgerEntry]):
    def __init__(self, db: Session):
        super().__init__(db, LedgerEntry)

    def list_for_session(self, session_id: str) -> List[LedgerEntry]:
        return (
            self.db.query(LedgerEntry)
            .filter(LedgerEntry.session_id == session_id)
            .order_by(LedgerEntry.created_at.asc(), LedgerEntry.id.asc())
            .all()
        )

    def get_pending_payment(self, session_id: str) -> Optional[LedgerEntry]:
        return (
            self.db.query(LedgerEntry)
            .filter(
                LedgerEntry.session_id == session_id,
                LedgerEntry.entry_type == LedgerEntryType.PAYMENT.value,
                LedgerEntry.status == LedgerEntryStatus.PENDING.value,
            )
            .first()
        )

    def settle(self, entry: LedgerEntry, status: LedgerEntryStatus) -> LedgerEntry:
        """Move a pending entry to its settled status. Amounts are never touched."""
        entry.status = status.value
        self.db.flush()
        return entry
