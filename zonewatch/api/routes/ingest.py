"""API routes for snapshot ingestion.

Two entrypoints feed the same pipeline:
    POST /api/cctv/{camera_id}/snapshot: cameras, authenticated by X-Camera-Key
    POST /api/alerts/trigger: manual trigger with an explicit account id

Both return the pipeline result as a tagged JSON object:
    200 {"status": "accepted", ...} or {"status": "skipped", ...}
    400 {"status": "failed", "cause": "missing_account"}
    503 {"status": "failed", "cause": "storage_unavailable"}
"""

from __future__ import annotations

import hmac

from fastapi import APIRouter, Depends, File, Form, Header, UploadFile, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from zonewatch.api.dependencies import get_camera_or_404, get_pipeline, get_zone_or_404
from zonewatch.api.middleware.rate_limit import get_optional_redis, ingest_rate_limiter
from zonewatch.api.schemas.ingest import IngestResponse, to_ingest_response
from zonewatch.core.database import get_db
from zonewatch.core.exceptions import AuthenticationError, AuthorizationError, ValidationError
from zonewatch.core.logging import get_logger
from zonewatch.core.redis import RedisClient
from zonewatch.models import AlertChannel
from zonewatch.services.ingestion import (
    AlertIngestionPipeline,
    Failed,
    FailureCause,
    IngestResult,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["ingest"])

FAILURE_STATUS = {
    FailureCause.MISSING_ACCOUNT: status.HTTP_400_BAD_REQUEST,
    FailureCause.STORAGE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _result_response(result: IngestResult) -> JSONResponse:
    status_code = status.HTTP_200_OK
    if isinstance(result, Failed):
        status_code = FAILURE_STATUS.get(result.cause, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return JSONResponse(
        status_code=status_code,
        content=to_ingest_response(result).model_dump(mode="json"),
    )


async def _read_image(image: UploadFile | None) -> bytes:
    if image is None:
        raise ValidationError("No image provided", details={"field": "image"})
    data = await image.read()
    if not data:
        raise ValidationError("Image is empty", details={"field": "image"})
    return data


@router.post(
    "/cctv/{camera_id}/snapshot",
    response_model=IngestResponse,
    responses={
        400: {"description": "Image missing or empty"},
        401: {"description": "Camera key missing"},
        403: {"description": "Camera key does not match"},
        404: {"description": "Camera not found"},
        429: {"description": "Too many snapshots from this camera"},
        503: {"description": "Snapshot could not be stored"},
    },
)
async def ingest_camera_snapshot(
    camera_id: int,
    image: UploadFile | None = File(None),
    x_camera_key: str | None = Header(None, alias="X-Camera-Key"),
    db: AsyncSession = Depends(get_db),
    pipeline: AlertIngestionPipeline = Depends(get_pipeline),
    redis: RedisClient | None = Depends(get_optional_redis),
) -> JSONResponse:
    """Ingest a snapshot pushed by a registered camera.

    Args:
        camera_id: ID of the camera
        image: JPEG snapshot (multipart field "image")
        x_camera_key: The camera's API key
        db: Database session
        pipeline: Ingestion pipeline
        redis: Redis client for rate limiting (None = unlimited)

    Returns:
        The ingestion result
    """
    if not x_camera_key:
        raise AuthenticationError("X-Camera-Key header is required")
    data = await _read_image(image)

    camera = await get_camera_or_404(camera_id, db)
    if not hmac.compare_digest(camera.api_key.encode(), x_camera_key.encode()):
        logger.warning(f"Rejected snapshot for camera {camera_id}: invalid key")
        raise AuthorizationError("Invalid camera key")
    await ingest_rate_limiter.enforce(redis, camera_id)

    account_id, zone_id = camera.account_id, camera.zone_id
    # End the read transaction before the pipeline opens its own sessions
    await db.commit()

    result = await pipeline.ingest(
        account_id,
        data,
        zone_id=zone_id,
        camera_id=camera_id,
        channel=AlertChannel.CCTV,
    )
    return _result_response(result)


@router.post("/alerts/trigger", response_model=IngestResponse)
async def trigger_alert(
    image: UploadFile | None = File(None),
    account_id: str | None = Form(None),
    zone_id: int | None = Form(None),
    camera_id: int | None = Form(None),
    db: AsyncSession = Depends(get_db),
    pipeline: AlertIngestionPipeline = Depends(get_pipeline),
) -> JSONResponse:
    """Run a snapshot through the pipeline on behalf of an account.

    A zone, when given, must belong to the account.

    Args:
        image: JPEG snapshot (multipart field "image")
        account_id: Owning account; a missing id yields a failed result
        zone_id: Optional zone of the event
        camera_id: Optional camera of the event
        db: Database session
        pipeline: Ingestion pipeline

    Returns:
        The ingestion result
    """
    data = await _read_image(image)

    account = (account_id or "").strip()
    if account and zone_id is not None:
        await get_zone_or_404(zone_id, account, db)
    await db.commit()

    result = await pipeline.ingest(
        account or None,
        data,
        zone_id=zone_id,
        camera_id=camera_id,
        channel=AlertChannel.EMAIL,
    )
    return _result_response(result)
