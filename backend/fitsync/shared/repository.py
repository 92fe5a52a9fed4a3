"""
Base repository with common data access operations.

Feature repositories inherit from it and add their own queries.
Methods flush but never commit: the caller owns the transaction, so a
unit of work (one webhook event, one request) commits exactly once.

Usage:
    class ProgressTrackingRepository(BaseRepository[ProgressTracking]):
        def __init__(self, db: AsyncSession):
            super().__init__(db, ProgressTracking)
"""

from typing import Any, Generic, Type, TypeVar

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """Generic async repository over one mapped model."""

    def __init__(self, db: AsyncSession, model: Type[T]):
        self.db = db
        self.model = model

    def _filters(self, criteria: dict[str, Any]) -> list:
        return [getattr(self.model, key) == value for key, value in criteria.items()]

    async def get_by_id(self, id: int | str) -> T | None:
        """Get entity by primary key."""
        return await self.db.get(self.model, id)

    async def get_by(self, **kwargs) -> T | None:
        """
        Get first entity matching all field values.

        Args:
            **kwargs: Field name-value pairs to filter by

        Returns:
            First matching entity or None
        """
        result = await self.db.execute(
            select(self.model).where(*self._filters(kwargs)).limit(1)
        )
        return result.scalars().first()

    async def exists(self, **kwargs) -> bool:
        """Check whether any row matches the field values."""
        result = await self.db.execute(
            select(func.count()).select_from(self.model).where(*self._filters(kwargs))
        )
        return (result.scalar() or 0) > 0

    async def create(self, **kwargs) -> T:
        """
        Insert a new entity.

        Returns:
            Created entity with generated ID
        """
        entity = self.model(**kwargs)
        self.db.add(entity)
        await self.db.flush()
        return entity

    async def update_where(self, criteria: dict[str, Any], **values) -> int:
        """
        Single-statement UPDATE scoped by the given criteria.

        Returns:
            Number of rows affected
        """
        result = await self.db.execute(
            update(self.model)
            .where(*self._filters(criteria))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def delete_where(self, **kwargs) -> int:
        """
        Single-statement DELETE scoped by the given field values.

        Returns:
            Number of rows deleted
        """
        result = await self.db.execute(
            delete(self.model)
            .where(*self._filters(kwargs))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def count(self, *conditions) -> int:
        """Count entities matching SQLAlchemy conditions."""
        result = await self.db.execute(
            select(func.count()).select_from(self.model).where(*conditions)
        )
        return result.scalar() or 0
