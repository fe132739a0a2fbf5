"""Zone policy store and rule filter.

A zone's policy is its alert-type filter plus its cooldown. The store is a
thin layer over the zone_rules table; the filter is a pure function of the
policy and the face match outcome.

Usage:
    from zonewatch.services.zone_policy import ZonePolicyStore

    store = ZonePolicyStore(session)
    await store.upsert_rule(zone_id, "known_only", 15)

    if await store.allows(zone_id, is_known=False):
        ...

Ownership of the zone is checked by the caller (the HTTP layer); this
component trusts the zone id it is given.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from zonewatch.core.config import get_settings
from zonewatch.core.exceptions import InvalidRuleTypeError
from zonewatch.core.logging import get_logger
from zonewatch.models import MAX_COOLDOWN_MINUTES, MIN_COOLDOWN_MINUTES, ZoneRule, ZoneRuleType
from zonewatch.repositories import ZoneRuleRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ZonePolicy:
    """Effective rule of a zone."""

    zone_id: int
    rule_type: ZoneRuleType
    cooldown_minutes: int

    @classmethod
    def from_rule(cls, rule: ZoneRule) -> ZonePolicy:
        return cls(
            zone_id=rule.zone_id,
            rule_type=ZoneRuleType(rule.rule_type),
            cooldown_minutes=rule.cooldown_minutes,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "zone_id": self.zone_id,
            "rule_type": self.rule_type.value,
            "cooldown_minutes": self.cooldown_minutes,
        }


def parse_rule_type(value: ZoneRuleType | str) -> ZoneRuleType:
    """Validate a rule type.

    Raises:
        InvalidRuleTypeError: If the value is not one of the three rule types
    """
    if isinstance(value, ZoneRuleType):
        return value
    try:
        return ZoneRuleType(str(value).strip().lower())
    except ValueError:
        raise InvalidRuleTypeError(value) from None


def clamp_cooldown(value: Any, default: int) -> int:
    """Clamp a cooldown into [1, 1440] minutes.

    Missing, zero or non-numeric values fall back to ``default`` before
    clamping.
    """
    try:
        minutes = int(value) if value is not None else 0
    except (TypeError, ValueError):
        minutes = 0
    if not minutes:
        minutes = default
    return max(MIN_COOLDOWN_MINUTES, min(MAX_COOLDOWN_MINUTES, minutes))


def allows(policy: ZonePolicy | None, is_known: bool) -> bool:
    """Decide whether a classified event may become an alert.

    No rule and ``mixed`` allow everything. ``known_only`` keeps recognised
    people only; ``unknown_only`` keeps unrecognised people only.
    """
    if policy is None or policy.rule_type == ZoneRuleType.MIXED:
        return True
    if policy.rule_type == ZoneRuleType.KNOWN_ONLY:
        return is_known
    return not is_known


class ZonePolicyStore:
    """Lookup and upsert of per-zone rules."""

    def __init__(self, session: AsyncSession, *, default_rule_cooldown_minutes: int | None = None):
        self.session = session
        self._rules = ZoneRuleRepository(session)
        if default_rule_cooldown_minutes is None:
            default_rule_cooldown_minutes = get_settings().default_rule_cooldown_minutes
        self.default_rule_cooldown_minutes = default_rule_cooldown_minutes

    async def get_rule(self, zone_id: int | None) -> ZonePolicy | None:
        """Return the zone's policy, or None when the zone is absent or has no rule."""
        if zone_id is None:
            return None
        rule = await self._rules.get_by_zone_id(zone_id)
        return ZonePolicy.from_rule(rule) if rule else None

    async def upsert_rule(
        self,
        zone_id: int,
        rule_type: ZoneRuleType | str,
        cooldown_minutes: Any = None,
    ) -> ZonePolicy:
        """Create or replace the rule of a zone.

        Args:
            zone_id: Zone the rule applies to.
            rule_type: One of known_only, unknown_only, mixed.
            cooldown_minutes: Cooldown, clamped into [1, 1440]; missing values use
                the default rule cooldown.

        Returns:
            The stored policy.

        Raises:
            InvalidRuleTypeError: If rule_type is not a known rule type
        """
        parsed = parse_rule_type(rule_type)
        minutes = clamp_cooldown(cooldown_minutes, self.default_rule_cooldown_minutes)
        rule = await self._rules.upsert(zone_id, parsed, minutes)
        logger.info(
            f"Zone rule saved: zone={zone_id} type={parsed.value} cooldown={minutes}m",
            extra={"zone_id": zone_id},
        )
        return ZonePolicy.from_rule(rule)

    async def delete_rule(self, zone_id: int) -> bool:
        """Remove a zone's rule, restoring the permissive default."""
        return await self._rules.delete_by_zone_id(zone_id)

    async def allows(self, zone_id: int | None, is_known: bool) -> bool:
        """Apply the zone's rule filter to a face match outcome."""
        return allows(await self.get_rule(zone_id), is_known)
