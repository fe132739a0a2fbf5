"""Integration tests for the ledger-derived cooldown tracker."""

from datetime import UTC, datetime, timedelta

import pytest

from zonewatch.core.config import get_settings
from zonewatch.models import AlertClassification
from zonewatch.services.cooldown_tracker import CooldownTracker

pytestmark = pytest.mark.integration

T0 = datetime(2026, 5, 2, 14, 0, tzinfo=UTC)


@pytest.fixture
def tracker(session):
    return CooldownTracker(session, default_cooldown_minutes=5)


@pytest.mark.asyncio
async def test_no_prior_alert_is_not_suppressed(seed_zone, tracker):
    zone = await seed_zone(cooldown_minutes=10)

    check = await tracker.check(zone.id, now=T0)

    assert check.suppressed is False
    assert check.cooldown_minutes == 10


@pytest.mark.asyncio
async def test_unknown_alert_inside_window_suppresses(seed_zone, seed_alerts, tracker):
    zone = await seed_zone(cooldown_minutes=10)
    (alert,) = await seed_alerts(1, start=T0, zone_id=zone.id)

    check = await tracker.check(zone.id, now=T0 + timedelta(minutes=9))

    assert check.suppressed is True
    assert check.last_alert_id == alert.id
    assert check.seconds_remaining == 60


@pytest.mark.asyncio
async def test_window_expires(seed_zone, seed_alerts, tracker):
    zone = await seed_zone(cooldown_minutes=10)
    await seed_alerts(1, start=T0, zone_id=zone.id)

    assert await tracker.is_suppressed(zone.id, now=T0 + timedelta(minutes=11)) is False


@pytest.mark.asyncio
async def test_known_alerts_do_not_start_a_cooldown(seed_zone, seed_alerts, tracker):
    zone = await seed_zone(cooldown_minutes=10)
    await seed_alerts(1, start=T0, zone_id=zone.id, classification=AlertClassification.KNOWN)

    assert await tracker.is_suppressed(zone.id, now=T0 + timedelta(minutes=1)) is False


@pytest.mark.asyncio
async def test_known_candidate_is_never_suppressed(seed_zone, seed_alerts, tracker):
    zone = await seed_zone(cooldown_minutes=10)
    await seed_alerts(1, start=T0, zone_id=zone.id)

    assert (
        await tracker.is_suppressed(
            zone.id, AlertClassification.KNOWN, now=T0 + timedelta(minutes=1)
        )
        is False
    )


@pytest.mark.asyncio
async def test_event_without_zone_is_never_suppressed(seed_alerts, tracker):
    await seed_alerts(1, start=T0)

    check = await tracker.check(None, now=T0 + timedelta(minutes=1))

    assert check.suppressed is False
    assert check.cooldown_minutes is None


@pytest.mark.asyncio
async def test_zone_without_rule_uses_default_cooldown(seed_zone, seed_alerts, tracker):
    zone = await seed_zone(rule_type=None)
    await seed_alerts(1, start=T0, zone_id=zone.id)

    inside = await tracker.check(zone.id, now=T0 + timedelta(minutes=4))
    outside = await tracker.check(zone.id, now=T0 + timedelta(minutes=6))

    assert (inside.suppressed, inside.cooldown_minutes) == (True, 5)
    assert outside.suppressed is False


@pytest.mark.asyncio
async def test_other_zones_do_not_share_cooldown(seed_zone, seed_alerts, tracker):
    front = await seed_zone(name="Front")
    back = await seed_zone(name="Back")
    await seed_alerts(1, start=T0, zone_id=front.id)

    assert await tracker.is_suppressed(back.id, now=T0 + timedelta(minutes=1)) is False


def test_default_cooldown_comes_from_settings(session, monkeypatch):
    monkeypatch.setenv("DEFAULT_COOLDOWN_MINUTES", "7")
    get_settings.cache_clear()

    assert CooldownTracker(session).default_cooldown_minutes == 7
