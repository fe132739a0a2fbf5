"""API route handlers."""

from .alerts import router as alerts_router
from .cost import router as cost_router
from .ingest import router as ingest_router
from .system import router as system_router
from .zone_rules import router as zone_rules_router

__all__ = [
    "alerts_router",
    "cost_router",
    "ingest_router",
    "system_router",
    "zone_rules_router",
]
