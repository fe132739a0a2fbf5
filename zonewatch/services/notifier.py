"""Notifier adapters for unknown-person alerts.

Notification is best effort: each alert gets a single delivery attempt and
a failure is returned as an unsuccessful NotificationDelivery and logged.
Nothing is retried.

Usage:
    from zonewatch.services.notifier import build_unknown_alert_message, get_notifier

    notifier = get_notifier(settings)
    subject, body = build_unknown_alert_message(alert.id, alert.zone_id, alert.created_at)
    delivery = await notifier.send("owner@example.com", subject, body)

Delivery Tracking:
    Each attempt returns a NotificationDelivery containing:
    - channel: Which backend was used
    - success: Whether delivery succeeded
    - error: Error message if delivery failed
    - delivered_at: Timestamp of successful delivery
"""

from __future__ import annotations

import asyncio
import smtplib
import ssl
from dataclasses import dataclass
from datetime import datetime
from email.mime.text import MIMEText
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx

from zonewatch.core.config import get_settings
from zonewatch.core.logging import get_logger, sanitize_error
from zonewatch.core.time_utils import as_utc, utc_now

if TYPE_CHECKING:
    from zonewatch.core.config import Settings

logger = get_logger(__name__)


class NotificationChannel(str, Enum):
    """Notifier backend types."""

    EMAIL = "email"
    WEBHOOK = "webhook"


@dataclass
class NotificationDelivery:
    """Result of a notification delivery attempt."""

    channel: NotificationChannel
    success: bool
    error: str | None = None
    delivered_at: datetime | None = None
    recipient: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel.value,
            "success": self.success,
            "error": self.error,
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
            "recipient": self.recipient,
        }


@runtime_checkable
class Notifier(Protocol):
    """Anything that can deliver a message to an address."""

    async def send(self, address: str, subject: str, body: str) -> NotificationDelivery: ...


def build_unknown_alert_message(
    alert_id: int,
    zone_id: int | None,
    when: datetime,
    dashboard_url: str | None = None,
    subject: str | None = None,
) -> tuple[str, str]:
    """Render the subject and body of an unknown-person notification.

    Returns:
        (subject, body)
    """
    settings = get_settings()
    dashboard = dashboard_url or settings.dashboard_url
    body = (
        "Unknown person detected.\n\n"
        "Login to view snapshot:\n"
        f"{dashboard}\n\n"
        f"Alert ID: {alert_id}\n"
        f"Zone: {zone_id if zone_id is not None else 'N/A'}\n"
        f"Time: {as_utc(when).isoformat()}"
    )
    return subject or settings.alert_email_subject, body


class EmailNotifier:
    """Sends plain-text email over SMTP.

    smtplib is blocking, so the send runs in the default executor.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def is_configured(self) -> bool:
        return bool(self.settings.smtp_host and self.settings.smtp_from_address)

    async def send(self, address: str, subject: str, body: str) -> NotificationDelivery:
        """Send one email.

        Args:
            address: Recipient email address
            subject: Subject line
            body: Plain-text body

        Returns:
            NotificationDelivery with success/failure status
        """
        if not self.is_configured():
            return NotificationDelivery(
                channel=NotificationChannel.EMAIL,
                success=False,
                error="Email is not configured (missing SMTP settings)",
                recipient=address,
            )

        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = self.settings.smtp_from_address or ""
        msg["To"] = address

        try:
            await asyncio.get_running_loop().run_in_executor(
                None, self._send_email_sync, msg, [address]
            )
        except smtplib.SMTPAuthenticationError as e:
            error_msg = f"SMTP authentication failed: {e}"
            logger.error(error_msg)
            return NotificationDelivery(
                channel=NotificationChannel.EMAIL,
                success=False,
                error=error_msg,
                recipient=address,
            )
        except (smtplib.SMTPException, OSError) as e:
            error_msg = f"SMTP error: {sanitize_error(e)}"
            logger.error(error_msg)
            return NotificationDelivery(
                channel=NotificationChannel.EMAIL,
                success=False,
                error=error_msg,
                recipient=address,
            )

        logger.info("Email notification sent")
        return NotificationDelivery(
            channel=NotificationChannel.EMAIL,
            success=True,
            delivered_at=utc_now(),
            recipient=address,
        )

    def _send_email_sync(self, msg: MIMEText, recipients: list[str]) -> None:
        """Synchronous email sending (runs in thread pool)."""
        timeout = self.settings.notifier_timeout_seconds
        with smtplib.SMTP(
            self.settings.smtp_host or "", self.settings.smtp_port, timeout=timeout
        ) as server:
            if self.settings.smtp_use_tls:
                server.starttls(context=ssl.create_default_context())
            if self.settings.smtp_user and self.settings.smtp_password:
                server.login(self.settings.smtp_user, self.settings.smtp_password)
            server.sendmail(
                self.settings.smtp_from_address or "",
                recipients,
                msg.as_string(),
            )


class WebhookNotifier:
    """POSTs notifications as JSON to a webhook URL."""

    def __init__(self, settings: Settings | None = None, webhook_url: str | None = None):
        self.settings = settings or get_settings()
        self.webhook_url = webhook_url or self.settings.default_webhook_url
        self._http_client: httpx.AsyncClient | None = None

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.webhook_timeout_seconds)
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client and cleanup resources."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def send(self, address: str, subject: str, body: str) -> NotificationDelivery:
        url = self.webhook_url
        if not url:
            return NotificationDelivery(
                channel=NotificationChannel.WEBHOOK,
                success=False,
                error="No webhook URL configured",
                recipient=address,
            )

        try:
            response = await self._get_http_client().post(
                url,
                json={"address": address, "subject": subject, "body": body},
            )
        except httpx.TimeoutException:
            error_msg = f"Webhook request timed out after {self.settings.webhook_timeout_seconds}s"
            logger.error(error_msg)
            return NotificationDelivery(
                channel=NotificationChannel.WEBHOOK,
                success=False,
                error=error_msg,
                recipient=address,
            )
        except httpx.RequestError as e:
            error_msg = f"Webhook request failed: {e}"
            logger.error(error_msg)
            return NotificationDelivery(
                channel=NotificationChannel.WEBHOOK,
                success=False,
                error=error_msg,
                recipient=address,
            )

        if not response.is_success:
            # Status code only; the response body is not logged
            logger.warning("Webhook returned error status %s", response.status_code)
            return NotificationDelivery(
                channel=NotificationChannel.WEBHOOK,
                success=False,
                error=f"Webhook returned status {response.status_code}",
                recipient=address,
            )

        logger.info("Webhook notification sent")
        return NotificationDelivery(
            channel=NotificationChannel.WEBHOOK,
            success=True,
            delivered_at=utc_now(),
            recipient=address,
        )


def get_notifier(settings: Settings | None = None) -> EmailNotifier | WebhookNotifier:
    """Build the configured notifier backend."""
    settings = settings or get_settings()
    if settings.notification_channel == NotificationChannel.WEBHOOK.value:
        return WebhookNotifier(settings)
    return EmailNotifier(settings)
