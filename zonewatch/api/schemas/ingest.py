"""Pydantic schemas for snapshot ingestion responses.

The response is a tagged union on ``status`` with exactly the three
variants the pipeline can return.
"""

from decimal import Decimal
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from zonewatch.models import AlertClassification
from zonewatch.services.ingestion import (
    Accepted,
    Failed,
    FailureCause,
    IngestResult,
    SkipReason,
    Skipped,
)


class AcceptedResponse(BaseModel):
    """The event was stored and recorded."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "accepted",
                "alert_id": 42,
                "classification": "unknown",
                "cost": "0.0010",
            }
        }
    )

    status: Literal["accepted"] = "accepted"
    alert_id: int = Field(..., description="ID of the new ledger row")
    classification: AlertClassification = Field(..., description="Face match outcome")
    cost: Decimal = Field(..., description="Cost charged for the event")


class SkippedResponse(BaseModel):
    """The event was dropped by cooldown or by the zone rule."""

    status: Literal["skipped"] = "skipped"
    reason: SkipReason = Field(..., description="cooldown or policy")


class FailedResponse(BaseModel):
    """The event could not be processed and nothing was recorded."""

    status: Literal["failed"] = "failed"
    cause: FailureCause = Field(..., description="Why the event failed")


IngestResponse = Annotated[
    AcceptedResponse | SkippedResponse | FailedResponse,
    Field(discriminator="status"),
]


def to_ingest_response(result: IngestResult) -> AcceptedResponse | SkippedResponse | FailedResponse:
    """Convert a pipeline result to its response schema."""
    if isinstance(result, Accepted):
        return AcceptedResponse(
            alert_id=result.alert_id,
            classification=result.classification,
            cost=result.cost,
        )
    if isinstance(result, Skipped):
        return SkippedResponse(reason=result.reason)
    if isinstance(result, Failed):
        return FailedResponse(cause=result.cause)
    raise TypeError(f"Unexpected ingest result: {result!r}")
