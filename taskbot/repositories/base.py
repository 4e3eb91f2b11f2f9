"""
Shared plumbing for the SQLAlchemy-backed repositories
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskbot.errors import PersistenceFailure

logger = logging.getLogger(__name__)


@asynccontextmanager
async def persistence_guard(operation: str):
    """Translate SQLAlchemy errors into PersistenceFailure"""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"Persistence error during {operation}: {e}")
        raise PersistenceFailure(f"Database error during {operation}") from e


class Repository:
    """Thin wrapper around an AsyncSession; callers own the transaction"""

    model: Any = None

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, instance: Any) -> Any:
        async with persistence_guard(f"create {self.model.__tablename__}"):
            self.db.add(instance)
            await self.db.flush()
        return instance

    async def get(self, instance_id: int) -> Optional[Any]:
        async with persistence_guard(f"get {self.model.__tablename__}"):
            return await self.db.get(self.model, instance_id)

    async def save(self, instance: Any) -> Any:
        async with persistence_guard(f"update {self.model.__tablename__}"):
            await self.db.flush()
        return instance

    async def remove(self, instance: Any) -> None:
        async with persistence_guard(f"delete {self.model.__tablename__}"):
            await self.db.delete(instance)
            await self.db.flush()

    async def _all(self, query) -> Sequence[Any]:
        async with persistence_guard(f"query {self.model.__tablename__}"):
            result = await self.db.execute(query)
            return result.scalars().all()

    async def _first(self, query) -> Optional[Any]:
        async with persistence_guard(f"query {self.model.__tablename__}"):
            result = await self.db.execute(query)
            return result.scalars().first()


@asynccontextmanager
async def unit_of_work(db: AsyncSession):
    """Commit on success; roll back and re-raise on any failure"""
    try:
        yield
        async with persistence_guard("commit"):
            await db.commit()
    except Exception:
        await db.rollback()
        raise
