"""Health and metrics endpoints."""

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from zonewatch.api.dependencies import get_face_matcher
from zonewatch.core.config import get_settings
from zonewatch.core.database import get_db
from zonewatch.core.logging import get_logger, sanitize_error
from zonewatch.core.metrics import get_metrics_response
from zonewatch.services.face_matcher import HttpFaceMatcher

logger = get_logger(__name__)

router = APIRouter(tags=["system"])


@router.get("/health")
async def health(
    db: AsyncSession = Depends(get_db),
    face_matcher: HttpFaceMatcher | None = Depends(get_face_matcher),
) -> JSONResponse:
    """Report database and face matcher reachability.

    The service is unhealthy (503) without its database. A face matcher
    outage only degrades it, since events then proceed as unknown.
    """
    database_ok = True
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        database_ok = False
        logger.error(f"Database health check failed: {sanitize_error(e)}")

    matcher_ok = await face_matcher.health_check() if face_matcher is not None else False

    if not database_ok:
        overall = "unhealthy"
    elif not matcher_ok:
        overall = "degraded"
    else:
        overall = "healthy"

    return JSONResponse(
        status_code=status.HTTP_200_OK if database_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": overall,
            "version": get_settings().app_version,
            "services": {"database": database_ok, "face_matcher": matcher_ok},
        },
    )


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics in the text exposition format."""
    return Response(content=get_metrics_response(), media_type=CONTENT_TYPE_LATEST)
