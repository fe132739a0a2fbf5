"""FastAPI dependencies and entity lookup helpers.

Caller authentication happens upstream. Dashboard routes receive the
already authenticated account id in the X-Account-ID header; camera routes
authenticate with the camera's own key.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from fastapi import Header, HTTPException, Request, status

from zonewatch.core.exceptions import (
    AlertNotFoundError,
    CameraNotFoundError,
    MissingAccountError,
    ZoneNotFoundError,
)
from zonewatch.repositories import AlertRepository, CameraRepository, ZoneRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from zonewatch.models import Alert, Camera, Zone
    from zonewatch.services.face_matcher import HttpFaceMatcher
    from zonewatch.services.ingestion import AlertIngestionPipeline
    from zonewatch.services.object_store import ObjectStore


def get_account_id(
    x_account_id: str | None = Header(None, alias="X-Account-ID"),
) -> str:
    """Account id of the caller.

    Raises:
        MissingAccountError: If the header is missing or blank
    """
    account_id = (x_account_id or "").strip()
    if not account_id:
        raise MissingAccountError("X-Account-ID header is required")
    return account_id


def _from_state(request: Request, name: str, label: str) -> object:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} not available",
        )
    return value


def get_pipeline(request: Request) -> AlertIngestionPipeline:
    """Ingestion pipeline built during application startup.

    Raises:
        HTTPException: 503 if the application has not finished starting
    """
    return cast("AlertIngestionPipeline", _from_state(request, "pipeline", "Ingestion pipeline"))


def get_object_store(request: Request) -> ObjectStore:
    """Object store built during application startup."""
    return cast("ObjectStore", _from_state(request, "object_store", "Object store"))


def get_face_matcher(request: Request) -> HttpFaceMatcher | None:
    """Face matcher built during application startup, if any."""
    return cast("HttpFaceMatcher | None", getattr(request.app.state, "face_matcher", None))


async def get_zone_or_404(zone_id: int, account_id: str, db: AsyncSession) -> Zone:
    """Get a zone owned by the account or raise 404.

    A zone of another account is reported as not found.
    """
    zone = await ZoneRepository(db).get_for_account(zone_id, account_id)
    if zone is None:
        raise ZoneNotFoundError(zone_id)
    return zone


async def get_alert_or_404(alert_id: int, account_id: str, db: AsyncSession) -> Alert:
    """Get an alert owned by the account or raise 404."""
    alert = await AlertRepository(db).get_for_account(alert_id, account_id)
    if alert is None:
        raise AlertNotFoundError(alert_id)
    return alert


async def get_camera_or_404(camera_id: int, db: AsyncSession) -> Camera:
    """Get a camera by ID or raise 404."""
    camera = await CameraRepository(db).get_by_id(camera_id)
    if camera is None:
        raise CameraNotFoundError(camera_id)
    return camera
