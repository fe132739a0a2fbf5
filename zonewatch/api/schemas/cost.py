"""Pydantic schemas for usage and cost endpoints."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class LocationCost(BaseModel):
    """Usage of one location in the period."""

    location_id: int
    location_name: str
    scans_used: int = Field(..., ge=0)
    total_cost: Decimal


class CostSummaryResponse(BaseModel):
    """Current month usage broken down by location."""

    period_start: datetime
    period_end: datetime
    locations: list[LocationCost]


class CostTotalResponse(BaseModel):
    """Current month usage over every alert of the account."""

    period_start: datetime
    period_end: datetime
    scans_used: int = Field(..., ge=0)
    total_cost: Decimal
