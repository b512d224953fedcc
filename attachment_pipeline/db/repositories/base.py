"""
Shared plumbing for the pipeline repositories.

Repositories work on SQLAlchemy Core tables and hand out Pydantic models.
They never commit; the UnitOfWork that owns the session does.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import Table, select, update
from sqlalchemy.orm import Session

ModelT = TypeVar("ModelT", bound=BaseModel)


def model_to_jsonb(model: BaseModel | None) -> dict | None:
    """JSON-safe dict of a model for JSON/JSONB columns."""
    if model is None:
        return None
    return model.model_dump(mode="json")


def as_uuid(value: UUID | str) -> UUID:
    """
    Coerce an ID to UUID.

    Raises:
        ValueError: If a string is not a valid UUID
    """
    if isinstance(value, UUID):
        return value
    return UUID(str(value))


class BaseRepository(ABC, Generic[ModelT]):
    """
    Lookup, insert and partial update by primary key.

    Subclasses provide the table and the row/model conversions.
    """

    def __init__(self, session: Session):
        self.session = session

    @property
    @abstractmethod
    def table(self) -> Table: ...

    @abstractmethod
    def _row_to_model(self, row: Any) -> ModelT: ...

    @abstractmethod
    def _model_to_dict(self, model: ModelT) -> dict: ...

    def get_by_id(self, id: UUID | str) -> ModelT | None:
        """Entity with this primary key, or None."""
        row = self.session.execute(
            select(self.table).where(self.table.c.id == as_uuid(id))
        ).fetchone()
        return None if row is None else self._row_to_model(row)

    def create(self, model: ModelT) -> ModelT:
        """Insert the model and return it as stored."""
        stmt = (
            self.table.insert()
            .values(**self._model_to_dict(model))
            .returning(self.table)
        )
        return self._row_to_model(self.session.execute(stmt).fetchone())

    def update_by_id(self, id: UUID | str, **values) -> bool:
        """
        Set the given columns on one row.

        Returns:
            False if no row has this ID
        """
        stmt = update(self.table).where(self.table.c.id == as_uuid(id)).values(**values)
        return self.session.execute(stmt).rowcount > 0
