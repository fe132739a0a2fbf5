"""Alert ingestion pipeline.

Turns a snapshot plus camera identity into a policy-filtered alert record:

    Received -> cooldown check -> face match -> zone rule filter -> cost
             -> object store write -> ledger insert
             -> (retention, notification as follow-up work) -> Accepted

Every call ends in exactly one IngestResult variant:
    Accepted: the alert was stored and recorded
    Skipped(COOLDOWN): an unknown alert fired in the zone within its cooldown
    Skipped(POLICY): the zone rule does not allow this classification
    Failed: the account id was missing or the snapshot could not be stored

Dependency failures:
    - Face matcher unavailable or slow: the event proceeds as unknown
    - Object store unavailable or slow: the event fails, nothing is recorded
    - Retention or notifier failure: logged, the result is still Accepted

The cooldown check runs before the face match, against the zone's unknown
cooldown, so a suppressed zone never pays for a match call.

Usage:
    pipeline = AlertIngestionPipeline(
        session_factory=get_session_factory(),
        face_matcher=HttpFaceMatcher(),
        object_store=get_object_store(),
        notifier=get_notifier(),
    )
    result = await pipeline.ingest("owner@example.com", image, zone_id=3, camera_id=7)
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Coroutine
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar

from zonewatch.core.config import get_settings
from zonewatch.core.exceptions import FaceMatcherUnavailableError, ObjectStoreUnavailableError
from zonewatch.core.logging import get_logger, sanitize_error
from zonewatch.core.metrics import (
    observe_dependency_duration,
    record_dependency_failure,
    record_ingest_outcome,
    record_notification,
)
from zonewatch.core.time_utils import as_utc, utc_now
from zonewatch.models import Alert, AlertChannel, AlertClassification
from zonewatch.services.cooldown_tracker import CooldownTracker
from zonewatch.services.cost_resolver import CostResolver
from zonewatch.services.notifier import build_unknown_alert_message
from zonewatch.services.object_store import build_object_key
from zonewatch.services.retention_manager import AccountLockRegistry, RetentionManager
from zonewatch.services.zone_policy import ZonePolicyStore, allows

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from zonewatch.core.config import Settings
    from zonewatch.services.face_matcher import FaceMatcher
    from zonewatch.services.notifier import Notifier
    from zonewatch.services.object_store import ObjectStore

logger = get_logger(__name__)

SNAPSHOT_CONTENT_TYPE = "image/jpeg"


class SkipReason(str, Enum):
    COOLDOWN = "cooldown"
    POLICY = "policy"


class FailureCause(str, Enum):
    MISSING_ACCOUNT = "missing_account"
    STORAGE_UNAVAILABLE = "storage_unavailable"


@dataclass(frozen=True, slots=True)
class Accepted:
    """The event was stored and recorded."""

    alert_id: int
    classification: AlertClassification
    cost: Decimal
    object_key: str

    status: ClassVar[str] = "accepted"

    def to_dict(self) -> dict[str, Any]:
        # object_key stays internal
        return {
            "status": self.status,
            "alert_id": self.alert_id,
            "classification": self.classification.value,
            "cost": str(self.cost),
        }


@dataclass(frozen=True, slots=True)
class Skipped:
    """The event was dropped by cooldown or by the zone rule."""

    reason: SkipReason

    status: ClassVar[str] = "skipped"

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status, "reason": self.reason.value}


@dataclass(frozen=True, slots=True)
class Failed:
    """The event could not be processed; nothing was recorded."""

    cause: FailureCause

    status: ClassVar[str] = "failed"

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status, "cause": self.cause.value}


IngestResult = Accepted | Skipped | Failed


def outcome_label(result: IngestResult) -> str:
    """Metrics label of a result."""
    if isinstance(result, Skipped):
        return f"skipped_{result.reason.value}"
    return result.status


class FollowUpTasks:
    """Tracks detached follow-up work so it can be awaited on shutdown."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for outstanding follow-ups, including ones spawned while waiting."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while self._tasks:
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                logger.warning(f"{len(self._tasks)} follow-up tasks still running after drain timeout")
                return
            await asyncio.wait(set(self._tasks), timeout=remaining)


class AlertIngestionPipeline:
    """Orchestrates cooldown, face match, zone policy, storage and the ledger.

    Database work runs in short sessions of its own; no session is held
    open across calls to the face matcher or the object store.
    """

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession],
        face_matcher: FaceMatcher,
        object_store: ObjectStore,
        notifier: Notifier | None = None,
        settings: Settings | None = None,
        lock_registry: AccountLockRegistry | None = None,
        retention_manager: RetentionManager | None = None,
    ):
        """Initialize the pipeline.

        Args:
            session_factory: Factory for database sessions
            face_matcher: Face matching adapter
            object_store: Snapshot storage adapter
            notifier: Notification adapter (None = no notifications)
            settings: Settings (None = global settings)
            lock_registry: Per-account retention locks
            retention_manager: Retention enforcement (None = build one from settings)
        """
        self.settings = settings or get_settings()
        self._session_factory = session_factory
        self._face_matcher = face_matcher
        self._object_store = object_store
        self._notifier = notifier
        if retention_manager is None:
            retention_manager = RetentionManager(
                session_factory,
                object_store,
                lock_registry=lock_registry,
                max_count=self.settings.max_alerts_per_account,
                storage_timeout=self.settings.storage_timeout_seconds,
            )
        self.retention_manager = retention_manager
        self.follow_ups = FollowUpTasks()

    async def ingest(
        self,
        account_id: str | None,
        image: bytes,
        *,
        zone_id: int | None = None,
        camera_id: int | None = None,
        channel: AlertChannel | str = AlertChannel.EMAIL,
        now: datetime | None = None,
    ) -> IngestResult:
        """Process one snapshot.

        Args:
            account_id: Owning account (required)
            image: Snapshot bytes (JPEG)
            zone_id: Zone of the camera, if assigned
            camera_id: Camera that sent the snapshot, if any
            channel: How the event arrived ("email" or "cctv")
            now: Override of the current time

        Returns:
            Exactly one of Accepted, Skipped, Failed
        """
        result = await self._ingest(account_id, image, zone_id, camera_id, channel, now)
        record_ingest_outcome(outcome_label(result))
        return result

    async def _ingest(
        self,
        account_id: str | None,
        image: bytes,
        zone_id: int | None,
        camera_id: int | None,
        channel: AlertChannel | str,
        now: datetime | None,
    ) -> IngestResult:
        if not account_id or not account_id.strip():
            logger.warning("Ingestion rejected: missing account id")
            return Failed(cause=FailureCause.MISSING_ACCOUNT)

        current = as_utc(now) if now is not None else utc_now()
        channel_value = AlertChannel(channel).value

        async with self._session_factory() as session:
            tracker = CooldownTracker(
                session, default_cooldown_minutes=self.settings.default_cooldown_minutes
            )
            cooldown = await tracker.check(zone_id, AlertClassification.UNKNOWN, current)
        if cooldown.suppressed:
            logger.info(
                f"Zone {zone_id} in cooldown ({cooldown.seconds_remaining}s remaining), "
                f"event skipped",
                extra={"zone_id": zone_id, "camera_id": camera_id},
            )
            return Skipped(reason=SkipReason.COOLDOWN)

        is_known = await self._match(image)
        classification = AlertClassification.KNOWN if is_known else AlertClassification.UNKNOWN

        async with self._session_factory() as session:
            policy = await ZonePolicyStore(
                session, default_rule_cooldown_minutes=self.settings.default_rule_cooldown_minutes
            ).get_rule(zone_id)
            if not allows(policy, is_known):
                logger.info(
                    f"Zone {zone_id} rule {policy.rule_type.value if policy else None} "
                    f"blocks {classification.value} event",
                    extra={"zone_id": zone_id, "camera_id": camera_id},
                )
                return Skipped(reason=SkipReason.POLICY)
            cost = await CostResolver(
                session, default_cost=Decimal(str(self.settings.default_cost_per_scan))
            ).resolve(zone_id)

        object_key = build_object_key(account_id, current)
        if not await self._store(object_key, image):
            return Failed(cause=FailureCause.STORAGE_UNAVAILABLE)

        alert = Alert(
            account_id=account_id,
            classification=classification,
            object_key=object_key,
            channel=channel_value,
            cost=cost,
            zone_id=zone_id,
            camera_id=camera_id,
            protected=False,
            created_at=current,
        )
        # Once the snapshot is stored the row is written even if the caller goes away
        record = self.follow_ups.spawn(self._record(alert), name=f"record-alert-{object_key}")
        alert_id = await asyncio.shield(record)

        logger.info(
            f"Alert {alert_id} accepted ({classification.value}) for zone {zone_id}",
            extra={"alert_id": alert_id, "zone_id": zone_id, "camera_id": camera_id},
        )
        return Accepted(
            alert_id=alert_id,
            classification=classification,
            cost=cost,
            object_key=object_key,
        )

    async def _match(self, image: bytes) -> bool:
        """Return True when the face matched an enrolled person.

        Any matcher failure counts as no match.
        """
        start_time = time.monotonic()
        try:
            matches = await asyncio.wait_for(
                self._face_matcher.search(image),
                timeout=self.settings.matcher_timeout_seconds,
            )
        except TimeoutError:
            record_dependency_failure("face_matcher", "timeout")
            logger.warning(
                f"Face matcher timed out after {self.settings.matcher_timeout_seconds}s, "
                f"treating event as unknown"
            )
            return False
        except FaceMatcherUnavailableError as e:
            record_dependency_failure("face_matcher", "unavailable")
            logger.warning(
                "Face matcher unavailable, treating event as unknown", extra=e.to_log_dict()
            )
            return False
        except Exception as e:
            record_dependency_failure("face_matcher", "error")
            logger.error(
                f"Face matcher failed, treating event as unknown: {sanitize_error(e)}",
                exc_info=True,
            )
            return False
        finally:
            observe_dependency_duration("face_matcher", time.monotonic() - start_time)
        return len(matches) > 0

    async def _store(self, object_key: str, image: bytes) -> bool:
        start_time = time.monotonic()
        try:
            await asyncio.wait_for(
                self._object_store.put(object_key, image, SNAPSHOT_CONTENT_TYPE),
                timeout=self.settings.storage_timeout_seconds,
            )
        except TimeoutError:
            record_dependency_failure("object_store", "timeout")
            logger.error(
                f"Object store write timed out after {self.settings.storage_timeout_seconds}s"
            )
            return False
        except (ObjectStoreUnavailableError, OSError) as e:
            record_dependency_failure("object_store", "unavailable")
            logger.error(f"Object store write failed: {sanitize_error(e)}")
            return False
        except Exception as e:
            record_dependency_failure("object_store", "error")
            logger.error(f"Object store write failed: {sanitize_error(e)}", exc_info=True)
            return False
        finally:
            observe_dependency_duration("object_store", time.monotonic() - start_time)
        return True

    async def _record(self, alert: Alert) -> int:
        """Insert the ledger row and schedule retention and notification."""
        async with self._session_factory() as session:
            session.add(alert)
            await session.commit()
            alert_id = alert.id

        self.follow_ups.spawn(
            self._run_follow_ups(
                alert.account_id, alert_id, alert.classification, alert.zone_id, alert.created_at
            ),
            name=f"alert-follow-up-{alert_id}",
        )
        return alert_id

    async def _run_follow_ups(
        self,
        account_id: str,
        alert_id: int,
        classification: AlertClassification,
        zone_id: int | None,
        created_at: datetime,
    ) -> None:
        try:
            await self.retention_manager.enforce(account_id)
        except Exception as e:
            logger.error(
                f"Retention enforcement failed after alert {alert_id}: {sanitize_error(e)}",
                exc_info=True,
            )

        if classification == AlertClassification.UNKNOWN:
            await self._notify(account_id, alert_id, zone_id, created_at)

    async def _notify(
        self, address: str, alert_id: int, zone_id: int | None, created_at: datetime
    ) -> None:
        if self._notifier is None or not self.settings.notification_enabled:
            return

        subject, body = build_unknown_alert_message(
            alert_id,
            zone_id,
            created_at,
            dashboard_url=self.settings.dashboard_url,
            subject=self.settings.alert_email_subject,
        )
        start_time = time.monotonic()
        try:
            delivery = await asyncio.wait_for(
                self._notifier.send(address, subject, body),
                timeout=self.settings.notifier_timeout_seconds,
            )
        except TimeoutError:
            record_dependency_failure("notifier", "timeout")
            record_notification(False)
            logger.warning(f"Notification for alert {alert_id} timed out")
            return
        except Exception as e:
            record_dependency_failure("notifier", "error")
            record_notification(False)
            logger.error(f"Notification for alert {alert_id} failed: {sanitize_error(e)}")
            return
        finally:
            observe_dependency_duration("notifier", time.monotonic() - start_time)

        record_notification(delivery.success)
        if not delivery.success:
            logger.warning(f"Notification for alert {alert_id} not delivered: {delivery.error}")

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for outstanding ledger writes and follow-ups."""
        await self.follow_ups.drain(timeout)
