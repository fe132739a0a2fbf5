"""Pydantic schemas for zone rule endpoints."""

from pydantic import BaseModel, ConfigDict, Field

from zonewatch.models import ZoneRuleType


class ZoneRuleUpdate(BaseModel):
    """Schema for creating or replacing a zone's rule.

    The rule type is validated by the policy store so that an unknown type
    is reported as INVALID_RULE_TYPE. The cooldown is clamped into
    [1, 1440] minutes rather than rejected.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "rule_type": "unknown_only",
                "cooldown_minutes": 10,
            }
        }
    )

    rule_type: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="One of known_only, unknown_only, mixed",
    )
    cooldown_minutes: int | None = Field(
        None,
        description="Minutes between unknown alerts in the zone (clamped to 1-1440)",
    )


class ZoneRuleResponse(BaseModel):
    """A zone's effective rule.

    ``configured`` is False when the zone has no rule, in which case every
    classification is allowed and the global default cooldown applies.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "zone_id": 3,
                "configured": True,
                "rule_type": "unknown_only",
                "cooldown_minutes": 10,
            }
        }
    )

    zone_id: int
    configured: bool
    rule_type: ZoneRuleType | None = None
    cooldown_minutes: int | None = None


class ZoneRuleDeleteResponse(BaseModel):
    zone_id: int
    deleted: bool
