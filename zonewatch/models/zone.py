"""Location, Zone and ZoneRule models.

A location is an account's property (house, cottage, plant). Zones are
sub-areas of a location, each with its own per-event cost and at most one
alerting rule.

Rule Types:
    - known_only: Only alerts for recognised (enrolled) people are kept
    - unknown_only: Only alerts for unrecognised people are kept
    - mixed: Every classification is kept

A zone without a rule allows every classification and uses the global
default cooldown.
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from zonewatch.core.time_utils import utc_now

from .camera import Base

if TYPE_CHECKING:
    from .camera import Camera

MIN_COOLDOWN_MINUTES = 1
MAX_COOLDOWN_MINUTES = 1440


class ZoneRuleType(str, enum.Enum):
    """Alert-type filter applied to a zone."""

    KNOWN_ONLY = "known_only"
    UNKNOWN_ONLY = "unknown_only"
    MIXED = "mixed"


class Location(Base):
    """A property owned by one account."""

    __tablename__ = "locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    zones: Mapped[list[Zone]] = relationship(
        "Zone", back_populates="location", passive_deletes=True
    )

    __table_args__ = (Index("idx_locations_account_id", "account_id"),)

    def __repr__(self) -> str:
        return f"<Location(id={self.id!r}, account_id={self.account_id!r}, name={self.name!r})>"


class Zone(Base):
    """Zone model representing a sub-area of a location.

    The zone's cost is charged per accepted alert. A null cost means the
    configured default applies.
    """

    __tablename__ = "zones"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    location_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("locations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    cost_per_scan: Mapped[Decimal | None] = mapped_column(Numeric(10, 4), nullable=True)
    active_hours: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    location: Mapped[Location] = relationship("Location", back_populates="zones")
    cameras: Mapped[list[Camera]] = relationship(
        "Camera", back_populates="zone", passive_deletes=True
    )

    __table_args__ = (
        Index("idx_zones_location_id", "location_id"),
        CheckConstraint(
            "cost_per_scan IS NULL OR cost_per_scan >= 0", name="ck_zones_cost_non_negative"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Zone(id={self.id!r}, location_id={self.location_id!r}, "
            f"name={self.name!r}, cost_per_scan={self.cost_per_scan!r})>"
        )


class ZoneRule(Base):
    """Alerting rule for a zone (at most one per zone).

    Writes go through an upsert keyed on zone_id, so a second write for the
    same zone replaces the first.
    """

    __tablename__ = "zone_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    zone_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("zones.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    rule_type: Mapped[ZoneRuleType] = mapped_column(
        Enum(
            ZoneRuleType,
            name="zone_rule_type_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        default=ZoneRuleType.UNKNOWN_ONLY,
        nullable=False,
    )
    cooldown_minutes: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            f"cooldown_minutes >= {MIN_COOLDOWN_MINUTES} "
            f"AND cooldown_minutes <= {MAX_COOLDOWN_MINUTES}",
            name="ck_zone_rules_cooldown_range",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ZoneRule(zone_id={self.zone_id!r}, rule_type={self.rule_type.value!r}, "
            f"cooldown_minutes={self.cooldown_minutes})>"
        )
