"""
Generic async repository (data-access layer).

``BaseRepository[T]`` wraps the request's ``AsyncSession``.  Reads go straight
to the database; writes are *staged* with :meth:`add` and made durable by a
single :meth:`commit`, so a service operation that touches an investment, its
ledger and a withdrawal request either lands completely or not at all.

- Every call runs through ``db_circuit_breaker``; a dead database fails fast
  with ``CircuitBreakerError`` instead of exhausting the pool.
- ``IntegrityError`` is rolled back here and re-raised.  The caller decides
  what it means (duplicate accrual, duplicate e-mail, ...).
- ``OperationalError`` is rolled back and re-raised unchanged.
"""

import logging
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

from investment_engine.core.resilience import db_circuit_breaker

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """CRUD for one SQLModel table, bound to one session."""

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    async def _guarded(self, func: Any, *args: Any, **kwargs: Any) -> Any:
        return await db_circuit_breaker.call(func, *args, **kwargs)

    async def _scalars(self, stmt: Any) -> List[ModelType]:
        async def _run() -> List[ModelType]:
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._guarded(_run)

    async def get(self, id: Any, refresh: bool = False) -> Optional[ModelType]:
        """
        Look up one row by primary key.

        ``refresh`` re-reads the row even when the session already holds it.
        Commands pass it once they hold the investment lock, so a decision is
        never made on a copy loaded before another request committed.
        """

        async def _get() -> Optional[ModelType]:
            return await self.db.get(self.model, id, populate_existing=refresh)

        return await self._guarded(_get)

    async def add(self, *entities: SQLModel) -> None:
        """Stage ``entities`` in the session; nothing is written until :meth:`commit`."""
        self.db.add_all(list(entities))

    async def commit(self) -> None:
        """Commit everything staged in this session, rolling back on failure."""

        async def _commit() -> None:
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                logger.warning("Commit rejected by a constraint on %s", self.model.__name__)
                raise
            except OperationalError:
                await self.db.rollback()
                logger.error("OperationalError committing %s", self.model.__name__)
                raise

        await self._guarded(_commit)

    async def create(self, entity: ModelType) -> ModelType:
        """Insert one entity, commit, and return it refreshed."""
        await self.add(entity)
        await self.commit()
        await self.db.refresh(entity)
        return entity
