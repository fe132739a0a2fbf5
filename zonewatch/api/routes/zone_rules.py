"""API routes for per-zone alert rules."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from zonewatch.api.dependencies import get_account_id, get_zone_or_404
from zonewatch.api.schemas.zone_rule import (
    ZoneRuleDeleteResponse,
    ZoneRuleResponse,
    ZoneRuleUpdate,
)
from zonewatch.core.database import get_db
from zonewatch.services.zone_policy import ZonePolicy, ZonePolicyStore

router = APIRouter(prefix="/api/zones", tags=["zone-rules"])


def _to_response(zone_id: int, policy: ZonePolicy | None) -> ZoneRuleResponse:
    if policy is None:
        return ZoneRuleResponse(zone_id=zone_id, configured=False)
    return ZoneRuleResponse(
        zone_id=zone_id,
        configured=True,
        rule_type=policy.rule_type,
        cooldown_minutes=policy.cooldown_minutes,
    )


@router.get("/{zone_id}/rule", response_model=ZoneRuleResponse)
async def get_zone_rule(
    zone_id: int,
    account_id: str = Depends(get_account_id),
    db: AsyncSession = Depends(get_db),
) -> ZoneRuleResponse:
    """Get a zone's rule.

    Returns ``configured: false`` when the zone has no rule.
    """
    await get_zone_or_404(zone_id, account_id, db)
    policy = await ZonePolicyStore(db).get_rule(zone_id)
    return _to_response(zone_id, policy)


@router.put("/{zone_id}/rule", response_model=ZoneRuleResponse)
async def put_zone_rule(
    zone_id: int,
    rule_data: ZoneRuleUpdate,
    account_id: str = Depends(get_account_id),
    db: AsyncSession = Depends(get_db),
) -> ZoneRuleResponse:
    """Create or replace a zone's rule.

    Writing the same zone twice replaces the first rule.

    Args:
        zone_id: ID of the zone
        rule_data: Rule type and cooldown
        account_id: Caller's account
        db: Database session

    Returns:
        The stored rule
    """
    await get_zone_or_404(zone_id, account_id, db)
    policy = await ZonePolicyStore(db).upsert_rule(
        zone_id, rule_data.rule_type, rule_data.cooldown_minutes
    )
    await db.commit()
    return _to_response(zone_id, policy)


@router.delete("/{zone_id}/rule", response_model=ZoneRuleDeleteResponse)
async def delete_zone_rule(
    zone_id: int,
    account_id: str = Depends(get_account_id),
    db: AsyncSession = Depends(get_db),
) -> ZoneRuleDeleteResponse:
    """Delete a zone's rule, restoring the permissive default."""
    await get_zone_or_404(zone_id, account_id, db)
    deleted = await ZonePolicyStore(db).delete_rule(zone_id)
    await db.commit()
    return ZoneRuleDeleteResponse(zone_id=zone_id, deleted=deleted)
