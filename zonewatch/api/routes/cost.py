"""API routes for current-month usage and cost."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from zonewatch.api.dependencies import get_account_id
from zonewatch.api.schemas.cost import CostSummaryResponse, CostTotalResponse, LocationCost
from zonewatch.core.database import get_db
from zonewatch.core.time_utils import month_bounds, utc_now
from zonewatch.repositories import AlertRepository

router = APIRouter(prefix="/api/cost", tags=["cost"])


@router.get("/summary", response_model=CostSummaryResponse)
async def get_cost_summary(
    account_id: str = Depends(get_account_id),
    db: AsyncSession = Depends(get_db),
) -> CostSummaryResponse:
    """Scans used and cost per location for the current calendar month (UTC)."""
    start, end = month_bounds(utc_now())
    usage = await AlertRepository(db).get_usage_by_location(account_id, start, end)
    return CostSummaryResponse(
        period_start=start,
        period_end=end,
        locations=[LocationCost(**row._asdict()) for row in usage],
    )


@router.get("/total", response_model=CostTotalResponse)
async def get_cost_total(
    account_id: str = Depends(get_account_id),
    db: AsyncSession = Depends(get_db),
) -> CostTotalResponse:
    """Scans used and cost over all of the account's alerts this month."""
    start, end = month_bounds(utc_now())
    totals = await AlertRepository(db).get_usage_totals(account_id, start, end)
    return CostTotalResponse(
        period_start=start,
        period_end=end,
        scans_used=totals.scans_used,
        total_cost=totals.total_cost,
    )
