"""Cooldown tracker for unknown-person alerts.

Cooldown is derived from the alert ledger instead of being cached, so it
stays correct across restarts and across server instances. Only unknown
alerts are subject to cooldown; a known-person alert is never suppressed
and an event without a zone is never suppressed.

Usage:
    tracker = CooldownTracker(session)
    if await tracker.is_suppressed(zone_id):
        return Skipped(reason=SkipReason.COOLDOWN)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from zonewatch.core.config import get_settings
from zonewatch.core.time_utils import as_utc, utc_now
from zonewatch.models import AlertClassification
from zonewatch.repositories import AlertRepository, ZoneRuleRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(frozen=True, slots=True)
class CooldownCheck:
    """Result of a cooldown check."""

    suppressed: bool
    cooldown_minutes: int | None = None
    last_alert_id: int | None = None
    seconds_remaining: int | None = None


class CooldownTracker:
    """Answers whether a new alert in a zone is currently suppressed."""

    def __init__(self, session: AsyncSession, *, default_cooldown_minutes: int | None = None):
        """Initialize the tracker.

        Args:
            session: SQLAlchemy async session for ledger lookups
            default_cooldown_minutes: Cooldown for zones without a rule
                (None = use config default)
        """
        self.session = session
        self._alerts = AlertRepository(session)
        self._rules = ZoneRuleRepository(session)
        if default_cooldown_minutes is None:
            default_cooldown_minutes = get_settings().default_cooldown_minutes
        self.default_cooldown_minutes = default_cooldown_minutes

    async def check(
        self,
        zone_id: int | None,
        candidate: AlertClassification = AlertClassification.UNKNOWN,
        now: datetime | None = None,
    ) -> CooldownCheck:
        """Look up the most recent unknown alert of the zone inside its cooldown window.

        Args:
            zone_id: Zone of the incoming event (None = camera not assigned to a zone)
            candidate: Classification the new alert would have
            now: Override of the current time for deterministic checks

        Returns:
            CooldownCheck describing whether the alert is suppressed
        """
        if zone_id is None or candidate != AlertClassification.UNKNOWN:
            return CooldownCheck(suppressed=False)

        rule = await self._rules.get_by_zone_id(zone_id)
        cooldown_minutes = rule.cooldown_minutes if rule else self.default_cooldown_minutes

        current = as_utc(now) if now is not None else utc_now()
        since = current - timedelta(minutes=cooldown_minutes)

        latest = await self._alerts.get_latest_in_zone_since(
            zone_id, AlertClassification.UNKNOWN, since
        )
        if latest is None:
            return CooldownCheck(suppressed=False, cooldown_minutes=cooldown_minutes)

        age = (current - as_utc(latest.created_at)).total_seconds()
        return CooldownCheck(
            suppressed=True,
            cooldown_minutes=cooldown_minutes,
            last_alert_id=latest.id,
            seconds_remaining=max(0, int(cooldown_minutes * 60 - age)),
        )

    async def is_suppressed(
        self,
        zone_id: int | None,
        candidate: AlertClassification = AlertClassification.UNKNOWN,
        now: datetime | None = None,
    ) -> bool:
        return (await self.check(zone_id, candidate, now)).suppressed
