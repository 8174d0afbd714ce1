# backend/app/repositories/base_repository.py
"""
Generic repository base for the scheduling engine.

Repositories flush but never commit; the calling service owns the
transaction boundary through ``BaseService.transaction()``.
"""

import logging
from typing import Generic, Optional, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException

T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Primary-key lookup, creation and simple filtering for one model.

    Attributes:
        db: SQLAlchemy session shared with the owning service
        model: Mapped class this repository reads and writes
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @property
    def dialect_name(self) -> str:
        """Name of the bound dialect, used to pick row locking strategies."""
        bind = self.db.get_bind()
        return bind.dialect.name if bind is not None else "postgresql"

    def get_by_id(self, id: str, load_relationships: bool = True) -> Optional[T]:
        query = self.db.query(self.model).filter(self.model.id == id)
        if load_relationships:
            query = self._apply_eager_loading(query)
        try:
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error("Failed to load %s %s: %s", self.model.__name__, id, e)
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}") from e

    def create(self, **kwargs) -> T:
        """Stage a new row and flush so generated values are populated."""
        entity = self.model(**kwargs)
        self.db.add(entity)
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            self.logger.error("Failed to create %s: %s", self.model.__name__, e)
            raise RepositoryException(f"Failed to create {self.model.__name__}") from e
        return entity

    def find_one_by(self, **kwargs) -> Optional[T]:
        return self.db.query(self.model).filter_by(**kwargs).first()

    def _apply_eager_loading(self, query: Query) -> Query:
        """Override in subclasses to eager load relationships."""
        return query
