"""API schemas for request/response validation."""

from .alerts import (
    AlertDeleteResponse,
    AlertListResponse,
    AlertProtectRequest,
    AlertResponse,
    ClassificationFilter,
)
from .cost import CostSummaryResponse, CostTotalResponse, LocationCost
from .ingest import (
    AcceptedResponse,
    FailedResponse,
    IngestResponse,
    SkippedResponse,
    to_ingest_response,
)
from .zone_rule import ZoneRuleDeleteResponse, ZoneRuleResponse, ZoneRuleUpdate

__all__ = [
    "AcceptedResponse",
    "AlertDeleteResponse",
    "AlertListResponse",
    "AlertProtectRequest",
    "AlertResponse",
    "ClassificationFilter",
    "CostSummaryResponse",
    "CostTotalResponse",
    "FailedResponse",
    "IngestResponse",
    "LocationCost",
    "SkippedResponse",
    "ZoneRuleDeleteResponse",
    "ZoneRuleResponse",
    "ZoneRuleUpdate",
    "to_ingest_response",
]
