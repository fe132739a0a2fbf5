"""Pytest configuration and shared fixtures.

This module provides shared fixtures for all zonewatch tests:
- test_settings: Autouse environment pointing every path at tmp_path
- engine / session_factory / session: Temporary SQLite database (aiosqlite)
- object_store: LocalObjectStore rooted under tmp_path
- face_matcher / notifier: In-memory fakes of the external collaborators
- pipeline / make_pipeline: AlertIngestionPipeline wired to the fakes
- seed_zone / seed_camera / seed_alerts: Factories for zones, cameras and ledger rows
- app / api_client: The FastAPI app and an httpx client for it, sharing the test database
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import httpx
import pytest
from hypothesis import HealthCheck, settings

from zonewatch.core.config import get_settings
from zonewatch.core.database import (
    create_all,
    create_engine_for_url,
    create_session_factory,
    get_db,
)
from zonewatch.core.exceptions import FaceMatcherUnavailableError
from zonewatch.core.time_utils import utc_now
from zonewatch.main import create_app
from zonewatch.models import (
    Alert,
    AlertChannel,
    AlertClassification,
    Camera,
    Location,
    Zone,
    ZoneRuleType,
)
from zonewatch.repositories import ZoneRuleRepository
from zonewatch.services.ingestion import AlertIngestionPipeline
from zonewatch.services.object_store import LocalObjectStore, build_object_key
from zonewatch.tests.fakes import (
    ACCOUNT_ID,
    FailingObjectStore,
    FakeFaceMatcher,
    FakeNotifier,
    SlowObjectStore,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable, Callable, Generator
    from pathlib import Path

    from fastapi import FastAPI
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

    from zonewatch.core.config import Settings

# The autouse environment fixture is function scoped; property tests only read it
settings.register_profile("zonewatch", suppress_health_check=[HealthCheck.function_scoped_fixture])
settings.load_profile("zonewatch")


@pytest.fixture(autouse=True)
def test_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[Settings]:
    """Point configuration at tmp_path and drop Redis."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path}/zonewatch.db")
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.setenv("OBJECT_STORE_PATH", str(tmp_path / "objects"))
    monkeypatch.setenv("LOG_FILE_PATH", str(tmp_path / "logs" / "zonewatch.log"))
    monkeypatch.setenv("ZONEWATCH_RUNTIME_ENV_PATH", str(tmp_path / "runtime.env"))
    monkeypatch.setenv("FACE_MATCHER_URL", "http://face-matcher.test")
    monkeypatch.setenv("DASHBOARD_URL", "https://zonewatch.test/dashboard")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
async def engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine]:
    engine = create_engine_for_url(test_settings.database_url)
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def object_store(tmp_path: Path) -> LocalObjectStore:
    return LocalObjectStore(tmp_path / "objects")


# =============================================================================
# Fakes for external collaborators
# =============================================================================


@pytest.fixture
def face_matcher() -> FakeFaceMatcher:
    return FakeFaceMatcher()


@pytest.fixture
def unavailable_face_matcher() -> FakeFaceMatcher:
    return FakeFaceMatcher(error=FaceMatcherUnavailableError("connection refused"))


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def failing_object_store(tmp_path: Path) -> LocalObjectStore:
    return FailingObjectStore(tmp_path / "objects")


@pytest.fixture
def slow_object_store(tmp_path: Path) -> LocalObjectStore:
    return SlowObjectStore(tmp_path / "objects")


@pytest.fixture
async def make_pipeline(
    session_factory: async_sessionmaker[AsyncSession],
    face_matcher: FakeFaceMatcher,
    object_store: LocalObjectStore,
    notifier: FakeNotifier,
    test_settings: Settings,
) -> AsyncGenerator[Callable[..., AlertIngestionPipeline]]:
    """Factory for pipelines with some collaborators swapped out."""
    built: list[AlertIngestionPipeline] = []

    def _make(**overrides: Any) -> AlertIngestionPipeline:
        kwargs: dict[str, Any] = {
            "session_factory": session_factory,
            "face_matcher": face_matcher,
            "object_store": object_store,
            "notifier": notifier,
            "settings": test_settings,
        }
        kwargs.update(overrides)
        pipeline = AlertIngestionPipeline(**kwargs)
        built.append(pipeline)
        return pipeline

    yield _make
    for pipeline in built:
        await pipeline.drain(timeout=5)


@pytest.fixture
def pipeline(make_pipeline: Callable[..., AlertIngestionPipeline]) -> AlertIngestionPipeline:
    return make_pipeline()


# =============================================================================
# Seed data
# =============================================================================


@pytest.fixture
def seed_zone(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[Zone]]:
    """Factory creating a location and a zone for an account.

    The zone gets an unknown_only rule by default; ``rule_type=None`` leaves
    it without one.
    """

    async def _seed(
        account_id: str = ACCOUNT_ID,
        *,
        name: str = "Front Door",
        location_name: str = "Home",
        cost_per_scan: Decimal | None = None,
        rule_type: ZoneRuleType | None = ZoneRuleType.UNKNOWN_ONLY,
        cooldown_minutes: int = 10,
    ) -> Zone:
        async with session_factory() as session:
            location = Location(account_id=account_id, name=location_name)
            session.add(location)
            await session.flush()
            zone = Zone(location_id=location.id, name=name, cost_per_scan=cost_per_scan)
            session.add(zone)
            await session.flush()
            if rule_type is not None:
                await ZoneRuleRepository(session).upsert(zone.id, rule_type, cooldown_minutes)
            await session.commit()
            return zone

    return _seed


@pytest.fixture
def seed_camera(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[Camera]]:
    """Factory creating a camera, optionally assigned to a zone."""

    async def _seed(
        account_id: str = ACCOUNT_ID,
        *,
        zone_id: int | None = None,
        name: str = "Porch Cam",
        **kwargs: Any,
    ) -> Camera:
        async with session_factory() as session:
            camera = Camera(account_id=account_id, zone_id=zone_id, name=name, **kwargs)
            session.add(camera)
            await session.commit()
            return camera

    return _seed


@pytest.fixture
def seed_alerts(
    session_factory: async_sessionmaker[AsyncSession],
    object_store: LocalObjectStore,
) -> Callable[..., Awaitable[list[Alert]]]:
    """Factory inserting ledger rows directly, one minute apart, oldest first.

    Each row gets a stored snapshot unless ``with_blobs`` is False.
    """

    async def _seed(
        count: int,
        account_id: str = ACCOUNT_ID,
        *,
        start: datetime | None = None,
        classification: AlertClassification = AlertClassification.UNKNOWN,
        zone_id: int | None = None,
        protected: bool = False,
        cost: Decimal = Decimal("0.0010"),
        with_blobs: bool = True,
    ) -> list[Alert]:
        first = start or utc_now() - timedelta(days=1)
        alerts: list[Alert] = []
        async with session_factory() as session:
            for i in range(count):
                created_at = first + timedelta(minutes=i)
                object_key = None
                if with_blobs:
                    object_key = build_object_key(account_id, created_at)
                    await object_store.put(object_key, b"\xff\xd8jpeg-%d" % i, "image/jpeg")
                alert = Alert(
                    account_id=account_id,
                    classification=classification,
                    object_key=object_key,
                    channel=AlertChannel.CCTV.value,
                    cost=cost,
                    zone_id=zone_id,
                    protected=protected,
                    created_at=created_at,
                )
                session.add(alert)
                alerts.append(alert)
            await session.commit()
        return alerts

    return _seed


# =============================================================================
# API client
# =============================================================================


@pytest.fixture
def app(
    session_factory: async_sessionmaker[AsyncSession],
    pipeline: AlertIngestionPipeline,
    object_store: LocalObjectStore,
    face_matcher: FakeFaceMatcher,
) -> Generator[FastAPI]:
    """App wired to the test database and fakes.

    The app runs without its lifespan; state is set here instead so requests
    share the event loop of the test database engine.
    """
    application = create_app(with_lifespan=False)
    application.state.pipeline = pipeline
    application.state.object_store = object_store
    application.state.face_matcher = face_matcher

    async def override_get_db() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def api_client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient]:
    """HTTP client for the test app."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
