# backend/app/repositories/expert_repository.py
"""
Expert Repository.

Reads expert schedules and provides row-locked access for the statistics
updates performed by session lifecycle transitions.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.exceptions import RepositoryException
from ..models.expert import Expert
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ExpertRepository(BaseRepository[Expert]):
    def __init__(self, db: Session):
        super().__init__(db, Expert)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(joinedload(Expert.account))

    def get_by_account_id(self, account_id: str) -> Optional[Expert]:
        return self.find_one_by(account_id=account_id)

    def get_for_update(self, expert_id: str) -> Optional[Expert]:
        """
        Load an expert row locked for the rest of the transaction.

        Statistic counters are read-modify-write; the lock serialises
        concurrent transitions touching the same expert.
        """
        try:
            query = self.db.query(Expert).filter(Expert.id == expert_id)
            if self.dialect_name == "postgresql":
                query = query.with_for_update()
            return query.populate_existing().first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking expert {expert_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock expert: {str(e)}")

    def list_ids(self) -> List[str]:
        return [row[0] for row in self.db.query(Expert.id).order_by(Expert.id).all()]
