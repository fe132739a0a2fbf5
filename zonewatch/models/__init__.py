"""SQLAlchemy models for the zone alerting service."""

from .alert import Alert, AlertChannel, AlertClassification
from .camera import Base, Camera, generate_api_key
from .zone import (
    MAX_COOLDOWN_MINUTES,
    MIN_COOLDOWN_MINUTES,
    Location,
    Zone,
    ZoneRule,
    ZoneRuleType,
)

__all__ = [
    "MAX_COOLDOWN_MINUTES",
    "MIN_COOLDOWN_MINUTES",
    "Alert",
    "AlertChannel",
    "AlertClassification",
    "Base",
    "Camera",
    "Location",
    "Zone",
    "ZoneRule",
    "ZoneRuleType",
    "generate_api_key",
]
