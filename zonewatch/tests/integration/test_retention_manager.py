"""Integration tests for bounded per-account retention."""

import asyncio

import pytest

from zonewatch.repositories import AlertRepository
from zonewatch.services.retention_manager import (
    AccountLockRegistry,
    RetentionManager,
    delete_alert_with_blob,
)
from zonewatch.tests.fakes import ACCOUNT_ID, OTHER_ACCOUNT_ID, FlakyDeleteObjectStore

pytestmark = pytest.mark.integration


@pytest.fixture
def manager(session_factory, object_store):
    return RetentionManager(session_factory, object_store, max_count=100)


async def _remaining_ids(session_factory, account_id=ACCOUNT_ID):
    async with session_factory() as session:
        alerts = await AlertRepository(session).list_for_account(account_id, limit=1000)
        return {alert.id for alert in alerts}


# Test: Enforcement


@pytest.mark.asyncio
async def test_under_cap_deletes_nothing(manager, seed_alerts):
    await seed_alerts(100)

    stats = await manager.enforce(ACCOUNT_ID)

    assert stats.rows_counted == 100
    assert stats.rows_deleted == 0


@pytest.mark.asyncio
async def test_evicts_oldest_rows_and_their_blobs(manager, seed_alerts, session_factory, object_store):
    alerts = await seed_alerts(105)

    stats = await manager.enforce(ACCOUNT_ID)

    assert (stats.rows_counted, stats.rows_deleted, stats.blobs_deleted) == (105, 5, 5)
    remaining = await _remaining_ids(session_factory)
    assert remaining == {alert.id for alert in alerts[5:]}
    for alert in alerts[:5]:
        assert await object_store.exists(alert.object_key) is False
    assert await object_store.exists(alerts[5].object_key) is True


@pytest.mark.asyncio
async def test_protected_rows_are_never_evicted(manager, seed_alerts, session_factory):
    protected = await seed_alerts(100, protected=True)
    unprotected = await seed_alerts(50)

    stats = await manager.enforce(ACCOUNT_ID)

    assert stats.rows_deleted == 50
    remaining = await _remaining_ids(session_factory)
    assert remaining == {alert.id for alert in protected}
    assert not remaining & {alert.id for alert in unprotected}


@pytest.mark.asyncio
async def test_all_protected_account_grows_past_cap(manager, seed_alerts):
    await seed_alerts(103, protected=True)

    stats = await manager.enforce(ACCOUNT_ID)

    assert (stats.rows_counted, stats.rows_deleted) == (103, 0)


@pytest.mark.asyncio
async def test_other_accounts_are_untouched(manager, seed_alerts, session_factory):
    await seed_alerts(3, OTHER_ACCOUNT_ID)
    await seed_alerts(102)

    await manager.enforce(ACCOUNT_ID)

    assert len(await _remaining_ids(session_factory, OTHER_ACCOUNT_ID)) == 3
    assert len(await _remaining_ids(session_factory)) == 100


@pytest.mark.asyncio
async def test_explicit_cap_overrides_configured_one(manager, seed_alerts, session_factory):
    await seed_alerts(10)

    stats = await manager.enforce(ACCOUNT_ID, max_count=4)

    assert stats.rows_deleted == 6
    assert len(await _remaining_ids(session_factory)) == 4


@pytest.mark.asyncio
async def test_rows_without_blobs_are_deleted(manager, seed_alerts):
    await seed_alerts(102, with_blobs=False)

    stats = await manager.enforce(ACCOUNT_ID)

    assert (stats.rows_deleted, stats.blobs_deleted, stats.blob_failures) == (2, 0, 0)


@pytest.mark.asyncio
async def test_blob_delete_failure_still_deletes_row(seed_alerts, session_factory, tmp_path):
    alerts = await seed_alerts(3)
    flaky = FlakyDeleteObjectStore(tmp_path / "objects", failing_keys={alerts[0].object_key})
    manager = RetentionManager(session_factory, flaky, max_count=1)

    stats = await manager.enforce(ACCOUNT_ID)

    assert (stats.rows_deleted, stats.blobs_deleted, stats.blob_failures) == (2, 1, 1)
    assert await _remaining_ids(session_factory) == {alerts[2].id}
    # The orphaned blob stays behind
    assert await flaky.exists(alerts[0].object_key) is True


@pytest.mark.asyncio
async def test_concurrent_enforcement_evicts_each_row_once(seed_alerts, session_factory, object_store):
    await seed_alerts(110)
    registry = AccountLockRegistry()
    managers = [
        RetentionManager(session_factory, object_store, lock_registry=registry, max_count=100)
        for _ in range(3)
    ]

    results = await asyncio.gather(*(m.enforce(ACCOUNT_ID) for m in managers))

    assert sum(stats.rows_deleted for stats in results) == 10
    assert len(await _remaining_ids(session_factory)) == 100
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_manager_keeps_an_empty_shared_registry(session_factory, object_store):
    registry = AccountLockRegistry()
    assert len(registry) == 0

    manager = RetentionManager(session_factory, object_store, lock_registry=registry)

    assert manager.lock_registry is registry


@pytest.mark.asyncio
async def test_busy_distributed_lock_skips(manager, seed_alerts):
    class BusyRegistry(AccountLockRegistry):
        async def _acquire_distributed(self, account_id):
            return None, False

    manager.lock_registry = BusyRegistry()
    await seed_alerts(101)

    stats = await manager.enforce(ACCOUNT_ID)

    assert stats.skipped is True
    assert stats.rows_deleted == 0


# Test: Manual deletion helper


@pytest.mark.asyncio
async def test_delete_alert_with_blob(seed_alerts, session, object_store):
    (alert,) = await seed_alerts(1)
    loaded = await AlertRepository(session).get_by_id(alert.id)

    assert await delete_alert_with_blob(session, object_store, loaded) is True
    await session.commit()

    assert await AlertRepository(session).get_by_id(alert.id) is None
    assert await object_store.exists(alert.object_key) is False
