"""FastAPI application entry point for the ZoneWatch alert service."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from redis.exceptions import RedisError

from zonewatch.api.exception_handlers import register_exception_handlers
from zonewatch.api.middleware.request_id import RequestIDMiddleware
from zonewatch.api.routes import (
    alerts_router,
    cost_router,
    ingest_router,
    system_router,
    zone_rules_router,
)
from zonewatch.core import close_db, get_session_factory, get_settings, init_db
from zonewatch.core.logging import get_logger, setup_logging
from zonewatch.core.redis import close_redis, init_redis
from zonewatch.services.face_matcher import HttpFaceMatcher
from zonewatch.services.ingestion import AlertIngestionPipeline
from zonewatch.services.notifier import get_notifier
from zonewatch.services.object_store import get_object_store
from zonewatch.services.retention_manager import AccountLockRegistry

logger = get_logger(__name__)

SHUTDOWN_DRAIN_TIMEOUT_SECONDS = 30.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifecycle - startup and shutdown events."""
    setup_logging()

    settings = get_settings()
    # Missing object store or matcher configuration is fatal here, not per event
    settings.require_pipeline_configuration()

    await init_db()
    logger.info("Database initialized")

    try:
        redis_client = await init_redis()
    except RedisError as e:
        logger.warning(f"Redis connection failed, continuing without Redis: {e}")
        redis_client = None

    object_store = get_object_store(settings)
    face_matcher = HttpFaceMatcher(settings)
    notifier = get_notifier(settings)
    pipeline = AlertIngestionPipeline(
        session_factory=get_session_factory(),
        face_matcher=face_matcher,
        object_store=object_store,
        notifier=notifier,
        settings=settings,
        lock_registry=AccountLockRegistry(redis_client),
    )

    app.state.object_store = object_store
    app.state.face_matcher = face_matcher
    app.state.pipeline = pipeline
    logger.info(
        f"Ingestion pipeline ready (store={settings.object_store_backend}, "
        f"notifier={settings.notification_channel}, redis={'on' if redis_client else 'off'})"
    )

    try:
        yield
    finally:
        await pipeline.drain(timeout=SHUTDOWN_DRAIN_TIMEOUT_SECONDS)
        app.state.pipeline = None
        await face_matcher.close()
        close_notifier = getattr(notifier, "close", None)
        if close_notifier is not None:
            await close_notifier()
        await close_redis()
        await close_db()
        logger.info("Shutdown complete")


def create_app(*, with_lifespan: bool = True) -> FastAPI:
    """Build the application.

    Args:
        with_lifespan: Run the startup/shutdown lifecycle. Tests that wire
            app.state themselves pass False.
    """
    application = FastAPI(
        title="ZoneWatch API",
        description="Snapshot ingestion, zone alert policy and alert ledger",
        version=get_settings().app_version,
        lifespan=lifespan if with_lifespan else None,
    )

    # Request ID middleware for log correlation
    application.add_middleware(RequestIDMiddleware)

    register_exception_handlers(application)

    application.include_router(ingest_router)
    application.include_router(alerts_router)
    application.include_router(zone_rules_router)
    application.include_router(cost_router)
    application.include_router(system_router)
    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "zonewatch.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
