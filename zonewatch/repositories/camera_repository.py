"""Repository for Camera entity database operations."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from zonewatch.models import Camera
from zonewatch.repositories.base import Repository

if TYPE_CHECKING:
    from collections.abc import Sequence


class CameraRepository(Repository[Camera]):
    """Repository for Camera entity database operations.

    Example:
        async with get_session() as session:
            repo = CameraRepository(session)
            camera = await repo.get_by_id(7)
    """

    model_class = Camera

    async def get_by_account(self, account_id: str) -> Sequence[Camera]:
        """Get an account's cameras, newest first."""
        stmt = (
            select(Camera)
            .where(Camera.account_id == account_id)
            .order_by(Camera.created_at.desc(), Camera.id.desc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
