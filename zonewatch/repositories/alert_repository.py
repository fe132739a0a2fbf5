"""Repository for the Alert ledger.

Example:
    async with get_session() as session:
        repo = AlertRepository(session)
        total = await repo.count_for_account("owner@example.com")
        recent = await repo.list_for_account("owner@example.com", limit=20)
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, NamedTuple

from sqlalchemy import and_, func, select

from zonewatch.models import Alert, AlertClassification, Location, Zone
from zonewatch.repositories.base import Repository

if TYPE_CHECKING:
    from collections.abc import Sequence


class UsageTotals(NamedTuple):
    """Alert count and summed cost over a period."""

    scans_used: int
    total_cost: Decimal


class LocationUsage(NamedTuple):
    """Per-location usage over a period."""

    location_id: int
    location_name: str
    scans_used: int
    total_cost: Decimal


class AlertRepository(Repository[Alert]):
    """Repository for Alert ledger rows.

    Every query that is exposed to callers is scoped by account id; the
    zone-scoped lookup is used by the cooldown tracker only.
    """

    model_class = Alert

    async def get_for_account(self, alert_id: int, account_id: str) -> Alert | None:
        """Get an alert only if it belongs to the given account."""
        stmt = select(Alert).where(Alert.id == alert_id, Alert.account_id == account_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_account(
        self,
        account_id: str,
        classification: AlertClassification | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Sequence[Alert]:
        """List an account's alerts newest first.

        Args:
            account_id: Owning account.
            classification: Optional filter; None returns every classification.
            limit: Maximum number of alerts to return.
            offset: Number of alerts to skip.

        Returns:
            A sequence of alerts ordered by creation time, newest first.
        """
        stmt = select(Alert).where(Alert.account_id == account_id)
        if classification is not None:
            stmt = stmt.where(Alert.classification == classification)
        stmt = stmt.order_by(Alert.created_at.desc(), Alert.id.desc()).limit(limit).offset(offset)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def count_for_account(self, account_id: str) -> int:
        """Count every ledger row of an account, protected or not."""
        stmt = select(func.count()).select_from(Alert).where(Alert.account_id == account_id)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def get_oldest_unprotected(self, account_id: str, limit: int) -> Sequence[Alert]:
        """Get the oldest unprotected alerts of an account.

        Args:
            account_id: Owning account.
            limit: Number of rows to return.

        Returns:
            Up to ``limit`` alerts with protected=False, oldest first.
        """
        if limit <= 0:
            return []
        stmt = (
            select(Alert)
            .where(Alert.account_id == account_id, Alert.protected.is_(False))
            .order_by(Alert.created_at.asc(), Alert.id.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get_latest_in_zone_since(
        self,
        zone_id: int,
        classification: AlertClassification,
        since: datetime,
    ) -> Alert | None:
        """Get the most recent alert of a classification in a zone at or after ``since``."""
        stmt = (
            select(Alert)
            .where(
                Alert.zone_id == zone_id,
                Alert.classification == classification,
                Alert.created_at >= since,
            )
            .order_by(Alert.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def set_protected(self, alert: Alert, protected: bool) -> Alert:
        """Change the only mutable field of a ledger row."""
        alert.protected = protected
        return await self.update(alert)

    async def get_usage_totals(self, account_id: str, start: datetime, end: datetime) -> UsageTotals:
        """Count alerts and sum their cost for an account in [start, end)."""
        stmt = select(func.count(Alert.id), func.coalesce(func.sum(Alert.cost), 0)).where(
            Alert.account_id == account_id,
            Alert.created_at >= start,
            Alert.created_at < end,
        )
        result = await self.session.execute(stmt)
        scans_used, total_cost = result.one()
        return UsageTotals(int(scans_used or 0), Decimal(str(total_cost or 0)))

    async def get_usage_by_location(
        self, account_id: str, start: datetime, end: datetime
    ) -> list[LocationUsage]:
        """Per-location alert count and cost for an account in [start, end).

        Every location of the account is returned, including ones without
        alerts in the period. Alerts whose zone was deleted no longer belong
        to any location and are only counted by get_usage_totals().
        """
        alert_join = and_(
            Alert.zone_id == Zone.id,
            Alert.created_at >= start,
            Alert.created_at < end,
        )
        stmt = (
            select(
                Location.id,
                Location.name,
                func.count(Alert.id),
                func.coalesce(func.sum(Alert.cost), 0),
            )
            .select_from(Location)
            .outerjoin(Zone, Zone.location_id == Location.id)
            .outerjoin(Alert, alert_join)
            .where(Location.account_id == account_id)
            .group_by(Location.id, Location.name, Location.created_at)
            .order_by(Location.created_at.asc(), Location.id.asc())
        )
        result = await self.session.execute(stmt)
        return [
            LocationUsage(
                location_id=row[0],
                location_name=row[1],
                scans_used=int(row[2] or 0),
                total_cost=Decimal(str(row[3] or 0)),
            )
            for row in result.all()
        ]
