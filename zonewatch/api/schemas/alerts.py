"""Pydantic schemas for alert ledger endpoints."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from zonewatch.models import AlertClassification


class ClassificationFilter(str, Enum):
    """Listing filter; ``all`` disables filtering."""

    UNKNOWN = "unknown"
    KNOWN = "known"
    ALL = "all"

    def as_classification(self) -> AlertClassification | None:
        if self is ClassificationFilter.ALL:
            return None
        return AlertClassification(self.value)


class AlertResponse(BaseModel):
    """Schema for one ledger row."""

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": 42,
                "classification": "unknown",
                "channel": "cctv",
                "cost": "0.0010",
                "zone_id": 3,
                "camera_id": 7,
                "protected": False,
                "created_at": "2026-01-03T10:30:00Z",
                "image_url": "/api/alerts/42/image",
            }
        },
    )

    id: int = Field(..., description="Alert ID")
    classification: AlertClassification
    channel: str
    cost: Decimal
    zone_id: int | None = None
    camera_id: int | None = None
    protected: bool
    created_at: datetime
    image_url: str | None = Field(None, description="Snapshot URL, None when no snapshot")


class AlertListResponse(BaseModel):
    """Newest-first page of alerts."""

    items: list[AlertResponse]
    count: int = Field(..., description="Number of alerts in this page")
    limit: int = Field(..., description="Page size that was applied")
    classification: ClassificationFilter


class AlertProtectRequest(BaseModel):
    protected: bool = Field(..., description="Exclude the alert from automatic retention")


class AlertDeleteResponse(BaseModel):
    id: int
    deleted: bool
    blob_deleted: bool
