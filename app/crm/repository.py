"""
Persistence gateway.

A thin generic repository over a SQLAlchemy ``Session``. Services build one per
call (``Repository(s, Customer)``) and never touch ``Session.query`` directly
for the common lookups. Unique constraints in the database are the final word
on duplicates: a violation at flush is rolled back and surfaces as
``ConflictError``.
"""
from __future__ import annotations

import logging
from typing import Any, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.crm.errors import ConflictError
from app.crm.models import Base

T = TypeVar("T", bound=Base)

logger = logging.getLogger(__name__)


class Repository(Generic[T]):
    def __init__(self, s: Session, model: type[T]):
        self.s = s
        self.model = model

    def _column(self, field: str):
        col = getattr(self.model, field, None)
        if col is None:
            raise AttributeError(f"{self.model.__name__} has no field {field!r}")
        return col

    def find_by_id(self, entity_id: int) -> T | None:
        return self.s.get(self.model, entity_id)

    def exists_by_id(self, entity_id: int) -> bool:
        stmt = select(self.model.id).where(self.model.id == entity_id).limit(1)  # type: ignore[attr-defined]
        return self.s.execute(stmt).first() is not None

    def find_by(self, field: str, value: Any) -> T | None:
        stmt = select(self.model).where(self._column(field) == value).limit(1)
        return self.s.scalars(stmt).first()

    def exists_by(self, field: str, value: Any) -> bool:
        stmt = select(self.model.id).where(self._column(field) == value).limit(1)  # type: ignore[attr-defined]
        return self.s.execute(stmt).first() is not None

    def find_all(self) -> list[T]:
        stmt = select(self.model).order_by(self.model.id)  # type: ignore[attr-defined]
        return list(self.s.scalars(stmt).all())

    def find_where(self, *criteria) -> list[T]:
        stmt = select(self.model).where(*criteria).order_by(self.model.id)  # type: ignore[attr-defined]
        return list(self.s.scalars(stmt).all())

    def count(self, *criteria) -> int:
        stmt = select(func.count()).select_from(self.model)
        if criteria:
            stmt = stmt.where(*criteria)
        return int(self.s.execute(stmt).scalar_one())

    def save(self, entity: T) -> T:
        """
        Add (or re-add) the entity and flush so ids and constraint checks happen now.
        """
        self.s.add(entity)
        try:
            self.s.flush()
        except IntegrityError as e:
            self.s.rollback()
            logger.warning("Unique constraint rejected %s write: %s", self.model.__name__, e.orig)
            raise ConflictError(f"{self.model.__name__} conflicts with an existing record.") from e
        return entity

    def delete_by_id(self, entity_id: int) -> None:
        entity = self.find_by_id(entity_id)
        if entity is not None:
            self.s.delete(entity)
            self.s.flush()
