"""Camera model for snapshot-pushing cameras."""

from __future__ import annotations

import secrets
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from zonewatch.core.time_utils import utc_now

if TYPE_CHECKING:
    from .zone import Zone

# 18 random bytes, hex encoded
API_KEY_BYTES = 18


def generate_api_key() -> str:
    """Generate a new camera credential.

    The key is shown to the owner once at creation and used by the camera
    in the X-Camera-Key header of every snapshot upload.
    """
    return secrets.token_hex(API_KEY_BYTES)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Camera(Base):
    """Camera model representing a registered snapshot source.

    A camera belongs to one account and is optionally assigned to one zone.
    Deleting the zone leaves the camera unassigned instead of removing it.
    """

    __tablename__ = "cameras"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location_label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    zone_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("zones.id", ondelete="SET NULL"), nullable=True
    )
    api_key: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, default=generate_api_key
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    zone: Mapped[Zone | None] = relationship("Zone", back_populates="cameras")

    __table_args__ = (
        Index("idx_cameras_account_id", "account_id"),
        Index("idx_cameras_zone_id", "zone_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Camera(id={self.id!r}, account_id={self.account_id!r}, "
            f"name={self.name!r}, zone_id={self.zone_id!r})>"
        )
