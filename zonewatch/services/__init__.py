"""Alert pipeline services and external adapters."""

from .cooldown_tracker import CooldownCheck, CooldownTracker
from .cost_resolver import CostResolver
from .face_matcher import FaceMatch, FaceMatcher, HttpFaceMatcher
from .ingestion import (
    Accepted,
    AlertIngestionPipeline,
    Failed,
    FailureCause,
    FollowUpTasks,
    IngestResult,
    SkipReason,
    Skipped,
)
from .notifier import (
    EmailNotifier,
    NotificationChannel,
    NotificationDelivery,
    Notifier,
    WebhookNotifier,
    build_unknown_alert_message,
    get_notifier,
)
from .object_store import LocalObjectStore, ObjectStore, build_object_key, get_object_store
from .retention_manager import (
    AccountLockRegistry,
    RetentionManager,
    RetentionStats,
    delete_alert_with_blob,
)
from .zone_policy import ZonePolicy, ZonePolicyStore, allows, clamp_cooldown, parse_rule_type

__all__ = [
    "Accepted",
    "AccountLockRegistry",
    "AlertIngestionPipeline",
    "CooldownCheck",
    "CooldownTracker",
    "CostResolver",
    "EmailNotifier",
    "FaceMatch",
    "FaceMatcher",
    "Failed",
    "FailureCause",
    "FollowUpTasks",
    "HttpFaceMatcher",
    "IngestResult",
    "LocalObjectStore",
    "NotificationChannel",
    "NotificationDelivery",
    "Notifier",
    "ObjectStore",
    "RetentionManager",
    "RetentionStats",
    "SkipReason",
    "Skipped",
    "WebhookNotifier",
    "ZonePolicy",
    "ZonePolicyStore",
    "allows",
    "build_object_key",
    "build_unknown_alert_message",
    "clamp_cooldown",
    "delete_alert_with_blob",
    "get_notifier",
    "get_object_store",
    "parse_rule_type",
]
