"""
Generic async repository (Data Access Layer).

Implements the Repository pattern on top of SQLAlchemy's ``AsyncSession``.
Concrete repositories inherit from ``BaseRepository[T]`` and add the
entity-specific queries they need.

Write methods only ``flush``; they never commit.  The service layer decides
where a unit of work begins and ends (see ``investtrack.db.session.atomic``),
so a balance mutation and the ledger rows it produces land in one database
transaction.

- **IntegrityError** is not caught here; each service maps it to its own
  domain error.
- **OperationalError** (connection loss, deadlock) is logged with the entity
  name and re-raised; the enclosing ``atomic`` block rolls back.
"""

import logging
from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic CRUD repository for SQLModel entities.

    Parameters
    ----------
    model : Type[ModelType]
        The SQLModel class this repository manages.
    db : AsyncSession
        An active async database session (injected per-request).
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    async def _flush(self, action: str) -> None:
        try:
            await self.db.flush()
        except OperationalError:
            logger.error("OperationalError during %s for %s", action, self.model.__name__)
            raise

    async def get(self, id: Any) -> Optional[ModelType]:
        """Fetch a single entity by primary key.  Returns ``None`` if not found."""
        return await self.db.get(self.model, id)

    async def add(self, entity: ModelType) -> ModelType:
        """Stage a new entity and flush so DB-side defaults and FKs are checked."""
        self.db.add(entity)
        await self._flush("add")
        return entity

    async def save(self, entity: ModelType) -> ModelType:
        """Flush pending changes made to an already-tracked entity."""
        self.db.add(entity)
        await self._flush("save")
        return entity

    async def remove(self, entity: ModelType) -> None:
        """Delete a tracked entity (flushed, not committed)."""
        await self.db.delete(entity)
        await self._flush("remove")

