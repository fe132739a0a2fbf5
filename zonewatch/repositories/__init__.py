"""Repository pattern implementation for database access abstraction.

Exports:
    Repository: Generic base class for all repositories
    AlertRepository: Repository for the Alert ledger
    CameraRepository: Repository for Camera entity
    ZoneRepository: Repository for Zone entity
    ZoneRuleRepository: Repository for ZoneRule entity

Example:
    from zonewatch.core import get_session
    from zonewatch.repositories import AlertRepository, ZoneRuleRepository

    async with get_session() as session:
        rule = await ZoneRuleRepository(session).get_by_zone_id(3)
        alerts = await AlertRepository(session).list_for_account("owner@example.com")
"""

from zonewatch.repositories.alert_repository import (
    AlertRepository,
    LocationUsage,
    UsageTotals,
)
from zonewatch.repositories.base import Repository
from zonewatch.repositories.camera_repository import CameraRepository
from zonewatch.repositories.zone_repository import ZoneRepository, ZoneRuleRepository

__all__ = [
    "AlertRepository",
    "CameraRepository",
    "LocationUsage",
    "Repository",
    "UsageTotals",
    "ZoneRepository",
    "ZoneRuleRepository",
]
