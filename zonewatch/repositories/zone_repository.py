"""Repositories for Zone and ZoneRule entities.

Example:
    async with get_session() as session:
        zone_repo = ZoneRepository(session)
        zone = await zone_repo.get_for_account(zone_id, "owner@example.com")

        rule_repo = ZoneRuleRepository(session)
        rule = await rule_repo.upsert(zone.id, ZoneRuleType.MIXED, 15)
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from zonewatch.models import Location, Zone, ZoneRule, ZoneRuleType
from zonewatch.repositories.base import Repository


class ZoneRepository(Repository[Zone]):
    """Repository for Zone entity database operations."""

    model_class = Zone

    async def get_for_account(self, zone_id: int, account_id: str) -> Zone | None:
        """Get a zone only if its location belongs to the given account.

        Args:
            zone_id: The zone to look up.
            account_id: The caller's account.

        Returns:
            The zone, or None if it does not exist or belongs to another account.
        """
        stmt = (
            select(Zone)
            .join(Location, Location.id == Zone.location_id)
            .where(Zone.id == zone_id, Location.account_id == account_id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_cost(self, zone_id: int) -> Decimal | None:
        """Return the zone's configured per-scan cost, or None if unset or no such zone."""
        stmt = select(Zone.cost_per_scan).where(Zone.id == zone_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()


class ZoneRuleRepository(Repository[ZoneRule]):
    """Repository for ZoneRule rows, keyed by zone id rather than surrogate id."""

    model_class = ZoneRule

    async def get_by_zone_id(self, zone_id: int) -> ZoneRule | None:
        stmt = select(ZoneRule).where(ZoneRule.zone_id == zone_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(
        self,
        zone_id: int,
        rule_type: ZoneRuleType,
        cooldown_minutes: int,
    ) -> ZoneRule:
        """Insert or replace the rule of a zone.

        The insert runs in a savepoint. If a concurrent writer created the
        rule first, the unique constraint on zone_id rejects the insert and
        the existing row is updated instead, so a zone never ends up with
        two rules.

        Args:
            zone_id: Zone the rule applies to.
            rule_type: Validated rule type.
            cooldown_minutes: Already clamped cooldown.

        Returns:
            The stored rule.
        """
        existing = await self.get_by_zone_id(zone_id)
        if existing is None:
            try:
                async with self.session.begin_nested():
                    rule = ZoneRule(
                        zone_id=zone_id,
                        rule_type=rule_type,
                        cooldown_minutes=cooldown_minutes,
                    )
                    self.session.add(rule)
                    await self.session.flush()
                await self.session.refresh(rule)
                return rule
            except IntegrityError:
                existing = await self.get_by_zone_id(zone_id)
                if existing is None:
                    raise

        existing.rule_type = rule_type
        existing.cooldown_minutes = cooldown_minutes
        return await self.update(existing)

    async def delete_by_zone_id(self, zone_id: int) -> bool:
        """Delete a zone's rule.

        Returns:
            True if a rule existed and was deleted.
        """
        stmt = delete(ZoneRule).where(ZoneRule.zone_id == zone_id)
        result = await self.session.execute(stmt)
        await self.session.flush()
        return (result.rowcount or 0) > 0  # type: ignore[attr-defined]
