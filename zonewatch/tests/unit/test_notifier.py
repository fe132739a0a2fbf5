"""Unit tests for notification adapters and message rendering."""

import smtplib
from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import httpx
import pytest

from zonewatch.services.notifier import (
    EmailNotifier,
    NotificationChannel,
    NotificationDelivery,
    Notifier,
    WebhookNotifier,
    build_unknown_alert_message,
    get_notifier,
)

WHEN = datetime(2026, 1, 3, 10, 30, tzinfo=UTC)


@pytest.fixture
def smtp_settings(test_settings):
    return test_settings.model_copy(
        update={
            "smtp_host": "smtp.example.com",
            "smtp_port": 587,
            "smtp_user": "alerts",
            "smtp_password": "hunter2",
            "smtp_from_address": "alerts@zonewatch.test",
            "smtp_use_tls": True,
        }
    )


@pytest.fixture
def webhook_settings(test_settings):
    return test_settings.model_copy(
        update={
            "notification_channel": "webhook",
            "default_webhook_url": "https://hooks.example.com/zonewatch",
        }
    )


# Test: Message rendering


def test_build_unknown_alert_message():
    subject, body = build_unknown_alert_message(42, 3, WHEN, dashboard_url="https://app.test/dash")

    assert subject == "[Alert] Unknown Face Detected"
    assert body == (
        "Unknown person detected.\n\n"
        "Login to view snapshot:\n"
        "https://app.test/dash\n\n"
        "Alert ID: 42\n"
        "Zone: 3\n"
        "Time: 2026-01-03T10:30:00+00:00"
    )


def test_build_unknown_alert_message_defaults(test_settings):
    subject, body = build_unknown_alert_message(7, None, WHEN, subject="Intruder")

    assert subject == "Intruder"
    assert "Zone: N/A" in body
    assert test_settings.dashboard_url in body


def test_build_unknown_alert_message_treats_naive_time_as_utc():
    _, body = build_unknown_alert_message(1, 1, WHEN.replace(tzinfo=None))
    assert body.endswith("Time: 2026-01-03T10:30:00+00:00")


# Test: Email


def test_email_notifier_satisfies_protocol(smtp_settings):
    assert isinstance(EmailNotifier(smtp_settings), Notifier)


@pytest.mark.asyncio
async def test_email_not_configured(test_settings):
    delivery = await EmailNotifier(test_settings).send("owner@example.com", "s", "b")

    assert delivery.success is False
    assert delivery.channel == NotificationChannel.EMAIL
    assert "not configured" in delivery.error


@pytest.mark.asyncio
async def test_email_send_success(smtp_settings):
    with patch("smtplib.SMTP") as mock_smtp:
        server = mock_smtp.return_value.__enter__.return_value

        delivery = await EmailNotifier(smtp_settings).send("owner@example.com", "Subj", "Body")

    assert delivery.success is True
    assert delivery.recipient == "owner@example.com"
    assert delivery.delivered_at is not None
    mock_smtp.assert_called_once_with("smtp.example.com", 587, timeout=30.0)
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("alerts", "hunter2")
    from_address, recipients, message = server.sendmail.call_args.args
    assert from_address == "alerts@zonewatch.test"
    assert recipients == ["owner@example.com"]
    assert "Subject: Subj" in message


@pytest.mark.asyncio
async def test_email_without_tls_or_credentials(smtp_settings):
    settings = smtp_settings.model_copy(
        update={"smtp_use_tls": False, "smtp_user": None, "smtp_password": None}
    )
    with patch("smtplib.SMTP") as mock_smtp:
        server = mock_smtp.return_value.__enter__.return_value

        delivery = await EmailNotifier(settings).send("owner@example.com", "s", "b")

    assert delivery.success is True
    server.starttls.assert_not_called()
    server.login.assert_not_called()


@pytest.mark.asyncio
async def test_email_authentication_failure(smtp_settings):
    with patch("smtplib.SMTP") as mock_smtp:
        server = mock_smtp.return_value.__enter__.return_value
        server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")

        delivery = await EmailNotifier(smtp_settings).send("owner@example.com", "s", "b")

    assert delivery.success is False
    assert "authentication" in delivery.error


@pytest.mark.asyncio
async def test_email_connection_failure(smtp_settings):
    with patch("smtplib.SMTP", side_effect=ConnectionRefusedError("refused")):
        delivery = await EmailNotifier(smtp_settings).send("owner@example.com", "s", "b")

    assert delivery.success is False
    assert delivery.error.startswith("SMTP error")


# Test: Webhook


@pytest.mark.asyncio
async def test_webhook_send_success(webhook_settings):
    notifier = WebhookNotifier(webhook_settings)
    with patch("httpx.AsyncClient.post") as mock_post:
        mock_post.return_value = MagicMock(is_success=True, status_code=204)

        delivery = await notifier.send("owner@example.com", "Subj", "Body")

    assert delivery.success is True
    assert delivery.channel == NotificationChannel.WEBHOOK
    assert mock_post.call_args.args[0] == "https://hooks.example.com/zonewatch"
    assert mock_post.call_args.kwargs["json"] == {
        "address": "owner@example.com",
        "subject": "Subj",
        "body": "Body",
    }
    await notifier.close()


@pytest.mark.asyncio
async def test_webhook_error_status(webhook_settings):
    notifier = WebhookNotifier(webhook_settings)
    with patch("httpx.AsyncClient.post") as mock_post:
        mock_post.return_value = MagicMock(is_success=False, status_code=500)

        delivery = await notifier.send("owner@example.com", "s", "b")

    assert delivery.success is False
    assert delivery.error == "Webhook returned status 500"


@pytest.mark.asyncio
async def test_webhook_timeout(webhook_settings):
    notifier = WebhookNotifier(webhook_settings)
    with patch("httpx.AsyncClient.post", side_effect=httpx.ReadTimeout("Timeout")):
        delivery = await notifier.send("owner@example.com", "s", "b")

    assert delivery.success is False
    assert "timed out" in delivery.error


@pytest.mark.asyncio
async def test_webhook_connection_error(webhook_settings):
    notifier = WebhookNotifier(webhook_settings)
    with patch("httpx.AsyncClient.post", side_effect=httpx.ConnectError("refused")):
        delivery = await notifier.send("owner@example.com", "s", "b")

    assert delivery.success is False
    assert "failed" in delivery.error


@pytest.mark.asyncio
async def test_webhook_without_url(test_settings):
    delivery = await WebhookNotifier(test_settings).send("owner@example.com", "s", "b")

    assert delivery.success is False
    assert delivery.error == "No webhook URL configured"


# Test: Factory and delivery records


def test_get_notifier_picks_backend(test_settings, webhook_settings):
    assert isinstance(get_notifier(test_settings), EmailNotifier)
    assert isinstance(get_notifier(webhook_settings), WebhookNotifier)


def test_delivery_to_dict():
    delivery = NotificationDelivery(
        channel=NotificationChannel.EMAIL,
        success=True,
        delivered_at=WHEN,
        recipient="owner@example.com",
    )
    assert delivery.to_dict() == {
        "channel": "email",
        "success": True,
        "error": None,
        "delivered_at": "2026-01-03T10:30:00+00:00",
        "recipient": "owner@example.com",
    }
