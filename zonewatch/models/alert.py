"""Alert model: the append-only ledger of accepted events.

One row is written per accepted ingestion. The ledger is the source of
truth for usage, cost, history and cooldown decisions.

Immutability:
    Once inserted, only the ``protected`` flag changes. Deletion (retention
    or manual) removes the backing blob first and the row second, so the
    accepted failure mode is an orphaned blob, never a row pointing at a
    missing blob.
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from zonewatch.core.time_utils import utc_now

from .camera import Base


class AlertClassification(str, enum.Enum):
    """Outcome of the face match for an event."""

    KNOWN = "known"
    UNKNOWN = "unknown"


class AlertChannel(str, enum.Enum):
    """How the event reached the pipeline / how the owner is told about it."""

    EMAIL = "email"
    CCTV = "cctv"


class Alert(Base):
    """Ledger entry for one accepted event.

    Indexes:
        (account_id, created_at): retention scans and listing
        (zone_id, classification, created_at): cooldown lookups
    """

    __tablename__ = "alerts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    classification: Mapped[AlertClassification] = mapped_column(
        Enum(
            AlertClassification,
            name="alert_classification_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
    )
    object_key: Mapped[str | None] = mapped_column(String(512), nullable=True)
    channel: Mapped[str] = mapped_column(
        String(32), default=AlertChannel.EMAIL.value, nullable=False
    )
    cost: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False)
    zone_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("zones.id", ondelete="SET NULL"), nullable=True
    )
    camera_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("cameras.id", ondelete="SET NULL"), nullable=True
    )
    protected: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        Index("idx_alerts_account_created_at", "account_id", "created_at"),
        Index("idx_alerts_zone_classification_created_at", "zone_id", "classification", "created_at"),
    )

    @property
    def is_known(self) -> bool:
        return self.classification == AlertClassification.KNOWN

    def __repr__(self) -> str:
        return (
            f"<Alert(id={self.id!r}, account_id={self.account_id!r}, "
            f"classification={self.classification.value!r}, protected={self.protected})>"
        )
