"""API routes for the alert ledger: listing, snapshots, protection and deletion."""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from zonewatch.api.dependencies import get_account_id, get_alert_or_404, get_object_store
from zonewatch.api.schemas.alerts import (
    AlertDeleteResponse,
    AlertListResponse,
    AlertProtectRequest,
    AlertResponse,
    ClassificationFilter,
)
from zonewatch.core.config import get_settings
from zonewatch.core.database import get_db
from zonewatch.core.exceptions import ObjectNotFoundError
from zonewatch.core.logging import get_logger
from zonewatch.models import Alert
from zonewatch.repositories import AlertRepository
from zonewatch.services.object_store import ObjectStore
from zonewatch.services.retention_manager import delete_alert_with_blob

logger = get_logger(__name__)

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


def _to_response(alert: Alert) -> AlertResponse:
    response = AlertResponse.model_validate(alert)
    if alert.object_key:
        response.image_url = f"/api/alerts/{alert.id}/image"
    return response


@router.get("", response_model=AlertListResponse)
async def list_alerts(
    classification: ClassificationFilter = Query(
        ClassificationFilter.UNKNOWN, description="unknown, known or all"
    ),
    limit: int = Query(50, ge=1, description="Page size (capped by the server)"),
    offset: int = Query(0, ge=0),
    account_id: str = Depends(get_account_id),
    db: AsyncSession = Depends(get_db),
) -> AlertListResponse:
    """List the account's alerts, newest first.

    Args:
        classification: Filter on classification (default unknown)
        limit: Requested page size; values above the server cap are lowered
        offset: Number of alerts to skip
        account_id: Caller's account
        db: Database session

    Returns:
        AlertListResponse with the page of alerts
    """
    page_size = min(limit, get_settings().alert_page_size_max)
    alerts = await AlertRepository(db).list_for_account(
        account_id,
        classification=classification.as_classification(),
        limit=page_size,
        offset=offset,
    )
    items = [_to_response(alert) for alert in alerts]
    return AlertListResponse(
        items=items,
        count=len(items),
        limit=page_size,
        classification=classification,
    )


@router.get("/{alert_id}/image")
async def get_alert_image(
    alert_id: int,
    account_id: str = Depends(get_account_id),
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
) -> StreamingResponse:
    """Stream an alert's snapshot.

    Raises:
        ObjectNotFoundError: 404 if the alert has no snapshot or it is gone
    """
    alert = await get_alert_or_404(alert_id, account_id, db)
    if not alert.object_key or not await store.exists(alert.object_key):
        raise ObjectNotFoundError(f"No snapshot stored for alert {alert_id}")

    return StreamingResponse(
        store.get(alert.object_key),
        media_type=await store.content_type(alert.object_key),
    )


@router.post("/{alert_id}/protect", response_model=AlertResponse)
async def protect_alert(
    alert_id: int,
    body: AlertProtectRequest,
    account_id: str = Depends(get_account_id),
    db: AsyncSession = Depends(get_db),
) -> AlertResponse:
    """Set or clear the protected flag, which excludes the alert from retention."""
    alert = await get_alert_or_404(alert_id, account_id, db)
    alert = await AlertRepository(db).set_protected(alert, body.protected)
    await db.commit()
    return _to_response(alert)


@router.delete("/{alert_id}", response_model=AlertDeleteResponse)
async def delete_alert(
    alert_id: int,
    account_id: str = Depends(get_account_id),
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
) -> AlertDeleteResponse:
    """Delete an alert and its snapshot, protected or not.

    The snapshot is removed first and the ledger row second.
    """
    alert = await get_alert_or_404(alert_id, account_id, db)
    blob_deleted = await delete_alert_with_blob(
        db, store, alert, timeout=get_settings().storage_timeout_seconds
    )
    await db.commit()
    logger.info(f"Alert {alert_id} deleted by account owner", extra={"alert_id": alert_id})
    return AlertDeleteResponse(id=alert_id, deleted=True, blob_deleted=blob_deleted)
