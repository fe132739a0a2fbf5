"""Per-event cost lookup."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from zonewatch.core.config import get_settings
from zonewatch.repositories import ZoneRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

# Scale of the Numeric(10, 4) cost columns
COST_QUANTUM = Decimal("0.0001")


def quantize_cost(value: Decimal | float | str) -> Decimal:
    """Round a cost to the precision the ledger stores."""
    return Decimal(str(value)).quantize(COST_QUANTUM, rounding=ROUND_HALF_UP)


class CostResolver:
    """Maps a zone to the cost charged for one accepted alert.

    The zone's own cost wins; a missing zone or a zone without an explicit
    cost falls back to the configured default. Costs are returned at ledger
    precision so the accepted result matches the stored row.
    """

    def __init__(self, session: AsyncSession, *, default_cost: Decimal | None = None):
        self.session = session
        self._zones = ZoneRepository(session)
        if default_cost is None:
            default_cost = Decimal(str(get_settings().default_cost_per_scan))
        self.default_cost = quantize_cost(default_cost)

    async def resolve(self, zone_id: int | None) -> Decimal:
        if zone_id is None:
            return self.default_cost
        cost = await self._zones.get_cost(zone_id)
        if cost is None:
            return self.default_cost
        return quantize_cost(cost)
