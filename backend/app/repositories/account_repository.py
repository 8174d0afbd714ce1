# backend/app/repositories/account_repository.py
"""
Account Repository.

Credit balance changes are single conditional UPDATE statements so that
concurrent bookings or refunds for the same client never lose an update.
"""

from decimal import Decimal
import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.account import Account
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AccountRepository(BaseRepository[Account]):
    def __init__(self, db: Session):
        super().__init__(db, Account)

    def get_credit_balance(self, account_id: str) -> Optional[Decimal]:
        row = (
            self.db.query(Account.credit_balance)
            .filter(Account.id == account_id)
            .execution_options(populate_existing=True)
            .first()
        )
        if row is None:
            return None
        return Decimal(row[0] or 0)

    def debit_credits(self, account_id: str, amount: Decimal) -> bool:
        """
        Atomically subtract ``amount`` if the balance covers it.

        Returns False when the balance is insufficient (or the account is
        missing); the balance is left untouched in that case.
        """
        if amount <= 0:
            return True
        try:
            result = self.db.execute(
                update(Account)
                .where(Account.id == account_id)
                .where(Account.credit_balance >= amount)
                .values(credit_balance=Account.credit_balance - amount)
                .execution_options(synchronize_session=False)
            )
            self._expire_cached(account_id)
            return bool(result.rowcount)
        except SQLAlchemyError as e:
            self.logger.error(f"Error debiting credits for {account_id}: {str(e)}")
            raise RepositoryException(f"Failed to debit credits: {str(e)}")

    def credit(self, account_id: str, amount: Decimal) -> bool:
        """Atomically add ``amount`` to the balance."""
        if amount <= 0:
            return True
        try:
            result = self.db.execute(
                update(Account)
                .where(Account.id == account_id)
                .values(credit_balance=Account.credit_balance + amount)
                .execution_options(synchronize_session=False)
            )
            self._expire_cached(account_id)
            return bool(result.rowcount)
        except SQLAlchemyError as e:
            self.logger.error(f"Error crediting {account_id}: {str(e)}")
            raise RepositoryException(f"Failed to credit account: {str(e)}")

    def _expire_cached(self, account_id: str) -> None:
        cached = self.db.identity_map.get(self.db.identity_key(Account, account_id))
        if cached is not None:
            self.db.expire(cached, ["credit_balance"])
