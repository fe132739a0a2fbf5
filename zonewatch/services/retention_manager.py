"""Bounded retention of the alert ledger.

Each account keeps at most ``max_alerts_per_account`` ledger rows. When an
ingestion pushes an account over the cap, the oldest unprotected rows are
evicted together with their snapshots. Protected rows are never evicted,
so an account that protects everything can grow past the cap.

Deletion order:
    The blob is deleted first and the row second. If the process dies in
    between, what remains is an orphaned blob, never a row pointing at a
    missing blob.

Serialization:
    Enforcement for one account runs under an in-process asyncio.Lock and,
    when Redis is configured, under a Redis lock named ``retention:{account}``
    as well, so two server instances do not race for the same oldest rows.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from redis.exceptions import LockError, RedisError

from zonewatch.core.config import get_settings
from zonewatch.core.exceptions import ObjectStoreUnavailableError
from zonewatch.core.logging import get_logger, sanitize_error
from zonewatch.core.metrics import record_retention_evictions
from zonewatch.repositories import AlertRepository

if TYPE_CHECKING:
    from redis.asyncio.lock import Lock
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from zonewatch.core.redis import RedisClient
    from zonewatch.models import Alert
    from zonewatch.services.object_store import ObjectStore

logger = get_logger(__name__)

RETENTION_LOCK_PREFIX = "retention:"


@dataclass
class RetentionStats:
    """Outcome of one enforcement run."""

    account_id: str
    rows_counted: int = 0
    rows_deleted: int = 0
    blobs_deleted: int = 0
    blob_failures: int = 0
    skipped: bool = False

    def to_dict(self) -> dict[str, int | str | bool]:
        return {
            "account_id": self.account_id,
            "rows_counted": self.rows_counted,
            "rows_deleted": self.rows_deleted,
            "blobs_deleted": self.blobs_deleted,
            "blob_failures": self.blob_failures,
            "skipped": self.skipped,
        }


class AccountLockRegistry:
    """Per-account locks for retention enforcement.

    Local locks are created on demand and dropped once no caller holds or
    waits for them, so the registry does not grow with the number of
    accounts ever seen.
    """

    def __init__(
        self,
        redis_client: RedisClient | None = None,
        *,
        lock_timeout: float = 60.0,
        blocking_timeout: float = 30.0,
    ):
        """Initialize the registry.

        Args:
            redis_client: Optional connected Redis client for cross-instance locking
            lock_timeout: Seconds after which a Redis lock expires if never released
            blocking_timeout: Seconds to wait for the Redis lock before giving up
        """
        self._redis = redis_client
        self._lock_timeout = lock_timeout
        self._blocking_timeout = blocking_timeout
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def _checkout(self, account_id: str) -> asyncio.Lock:
        lock = self._locks.get(account_id)
        if lock is None:
            lock = self._locks[account_id] = asyncio.Lock()
        self._users[account_id] = self._users.get(account_id, 0) + 1
        return lock

    def _checkin(self, account_id: str) -> None:
        remaining = self._users[account_id] - 1
        if remaining:
            self._users[account_id] = remaining
        else:
            del self._users[account_id]
            del self._locks[account_id]

    @asynccontextmanager
    async def hold(self, account_id: str) -> AsyncIterator[bool]:
        """Hold the account's retention lock.

        Yields:
            True when the lock is held. False when another instance holds the
            Redis lock past the blocking timeout; the caller should skip.
        """
        lock = self._checkout(account_id)
        try:
            async with lock:
                redis_lock, acquired = await self._acquire_distributed(account_id)
                if not acquired:
                    logger.info(f"Retention lock busy for account {account_id}, skipping")
                    yield False
                    return
                try:
                    yield True
                finally:
                    if redis_lock is not None:
                        try:
                            await redis_lock.release()
                        except (LockError, RedisError) as e:
                            logger.warning(f"Failed to release retention lock: {sanitize_error(e)}")
        finally:
            self._checkin(account_id)

    async def _acquire_distributed(self, account_id: str) -> tuple[Lock | None, bool]:
        """Take the Redis lock when Redis is configured.

        Redis errors degrade to the local lock alone.
        """
        if self._redis is None:
            return None, True
        try:
            redis_lock = self._redis.lock(
                f"{RETENTION_LOCK_PREFIX}{account_id}",
                timeout=self._lock_timeout,
                blocking_timeout=self._blocking_timeout,
            )
            if not await redis_lock.acquire():
                return None, False
        except RedisError as e:
            logger.warning(
                f"Redis retention lock unavailable, using local lock only: {sanitize_error(e)}"
            )
            return None, True
        return redis_lock, True


async def delete_alert_with_blob(
    session: AsyncSession,
    object_store: ObjectStore,
    alert: Alert,
    *,
    timeout: float | None = None,
) -> bool:
    """Delete an alert's snapshot, then its ledger row.

    A missing blob is not an error. A blob that cannot be deleted is logged
    and the row is deleted anyway. The caller commits.

    Returns:
        True if the blob is gone (or there was none), False if deleting it failed
    """
    blob_ok = True
    if alert.object_key:
        try:
            await asyncio.wait_for(object_store.delete(alert.object_key), timeout=timeout)
        except (ObjectStoreUnavailableError, TimeoutError) as e:
            blob_ok = False
            logger.warning(
                f"Failed to delete snapshot of alert {alert.id}: {sanitize_error(e)}",
                extra={"alert_id": alert.id},
            )
    await session.delete(alert)
    await session.flush()
    return blob_ok


class RetentionManager:
    """Evicts the oldest unprotected alerts of an account beyond the cap.

    Usage:
        manager = RetentionManager(get_session_factory(), object_store)
        stats = await manager.enforce("owner@example.com")
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        object_store: ObjectStore,
        *,
        lock_registry: AccountLockRegistry | None = None,
        max_count: int | None = None,
        storage_timeout: float | None = None,
    ):
        settings = get_settings()
        self._session_factory = session_factory
        self._object_store = object_store
        self.lock_registry = lock_registry if lock_registry is not None else AccountLockRegistry()
        self.max_count = max_count if max_count is not None else settings.max_alerts_per_account
        self.storage_timeout = (
            storage_timeout if storage_timeout is not None else settings.storage_timeout_seconds
        )

    async def enforce(self, account_id: str, max_count: int | None = None) -> RetentionStats:
        """Bring the account's ledger down to ``max_count`` rows where possible.

        Args:
            account_id: Account to enforce
            max_count: Cap for this run (None = configured cap)

        Returns:
            RetentionStats describing what was deleted
        """
        limit = self.max_count if max_count is None else max_count
        stats = RetentionStats(account_id=account_id)

        async with self.lock_registry.hold(account_id) as acquired:
            if not acquired:
                stats.skipped = True
                return stats

            async with self._session_factory() as session:
                repo = AlertRepository(session)
                stats.rows_counted = await repo.count_for_account(account_id)
                excess = stats.rows_counted - limit
                if excess <= 0:
                    return stats

                victims = await repo.get_oldest_unprotected(account_id, excess)
                for alert in victims:
                    had_blob = bool(alert.object_key)
                    if await delete_alert_with_blob(
                        session, self._object_store, alert, timeout=self.storage_timeout
                    ):
                        stats.blobs_deleted += int(had_blob)
                    else:
                        stats.blob_failures += 1
                    # One commit per row keeps the blob/row window to a single alert
                    await session.commit()
                    stats.rows_deleted += 1

        record_retention_evictions(stats.rows_deleted)
        if stats.rows_deleted:
            logger.info(
                f"Retention evicted {stats.rows_deleted} alerts for account {account_id} "
                f"({stats.rows_counted} counted, cap {limit})",
                extra=stats.to_dict(),
            )
        if stats.rows_deleted < excess:
            logger.info(
                f"Account {account_id} stays above the retention cap: "
                f"{stats.rows_counted - stats.rows_deleted} alerts, the rest are protected"
            )
        return stats
