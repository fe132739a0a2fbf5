"""Generic Repository base class for database access abstraction.

Async repository pattern over SQLAlchemy 2.0 models. Model-specific
repositories subclass it and add their own queries.

Example:
    from zonewatch.repositories import Repository
    from zonewatch.models import Camera

    class CameraRepository(Repository[Camera]):
        model_class = Camera

        async def get_by_api_key(self, api_key: str) -> Camera | None:
            ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy import func, select

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from zonewatch.models.camera import Base

T = TypeVar("T", bound="Base")

# Requests exceeding this limit are silently capped
MAX_LIMIT = 1000


class Repository(Generic[T]):  # noqa: UP046
    """Generic repository base class providing common CRUD operations.

    Attributes:
        model_class: Class attribute that must be set to the SQLAlchemy model class.
        session: The async database session used for all operations.

    Example:
        async with get_session() as session:
            repo = AlertRepository(session)
            alert = await repo.get_by_id(42)
    """

    model_class: type[T]

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository with a database session.

        Args:
            session: An async SQLAlchemy session obtained from get_db() or get_session().
        """
        self.session = session

    async def get_by_id(self, entity_id: Any) -> T | None:
        """Retrieve an entity by its primary key.

        Returns:
            The entity if found, None otherwise.
        """
        return await self.session.get(self.model_class, entity_id)

    async def list_paginated(self, *, skip: int = 0, limit: int = 100) -> Sequence[T]:
        """Retrieve entities with pagination support.

        Args:
            skip: Number of records to skip (offset).
            limit: Maximum number of records to return, capped to MAX_LIMIT.
        """
        capped_limit = min(limit, MAX_LIMIT)
        stmt = select(self.model_class).offset(skip).limit(capped_limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def create(self, entity: T) -> T:
        """Create a new entity in the database.

        Returns:
            The persisted entity with database-generated values (ids, defaults).

        Note:
            The entity is flushed but not committed. Commit happens when the
            session context exits or when session.commit() is called explicitly.
        """
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def update(self, entity: T) -> T:
        """Flush pending changes on an attached entity and reload it."""
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def delete(self, entity: T) -> None:
        """Delete an entity from the database.

        Note:
            Foreign keys referencing the entity follow their ON DELETE rules
            (CASCADE for zone rules, SET NULL for cameras and alerts).
        """
        await self.session.delete(entity)
        await self.session.flush()

    async def delete_by_id(self, entity_id: Any) -> bool:
        """Delete an entity by its primary key.

        Returns:
            True if the entity was found and deleted, False if not found.
        """
        entity = await self.get_by_id(entity_id)
        if entity is None:
            return False
        await self.delete(entity)
        return True

    async def exists(self, entity_id: Any) -> bool:
        """Check if an entity with the given primary key exists."""
        pk_column = next(iter(self.model_class.__table__.primary_key.columns))  # type: ignore[attr-defined]
        stmt = select(func.count()).select_from(self.model_class).where(pk_column == entity_id)
        result = await self.session.execute(stmt)
        return result.scalar_one() > 0

    async def count(self) -> int:
        """Count the total number of entities of this type."""
        stmt = select(func.count()).select_from(self.model_class)
        result = await self.session.execute(stmt)
        return result.scalar_one()
