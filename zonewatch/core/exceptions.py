"""Exception hierarchy for the ZoneWatch alerting service.

This module provides an exception hierarchy that:
1. Categorizes errors by domain (configuration, validation, external services)
2. Supports automatic HTTP status code mapping
3. Enables structured error responses

Dependency failures carry the severity the ingestion pipeline assigns them:
- ObjectStoreUnavailableError: fatal for the event, nothing is recorded
- FaceMatcherUnavailableError: degraded, the event proceeds as unknown
- NotifierUnavailableError: best effort, logged only
"""

from __future__ import annotations

from typing import Any


class ZoneWatchError(Exception):
    """Base exception for all application-specific errors."""

    default_message: str = "An unexpected error occurred"
    default_error_code: str = "INTERNAL_ERROR"
    default_status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        *,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.error_code = error_code or self.default_error_code
        self.status_code = status_code or self.default_status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# Validation Errors (400)
class ValidationError(ZoneWatchError):
    default_message = "Validation failed"
    default_error_code = "VALIDATION_ERROR"
    default_status_code = 400


class MissingAccountError(ValidationError):
    default_message = "Missing account id"
    default_error_code = "MISSING_ACCOUNT"


class InvalidRuleTypeError(ValidationError):
    default_message = "Invalid zone rule type"
    default_error_code = "INVALID_RULE_TYPE"

    def __init__(self, rule_type: Any, message: str | None = None, **kwargs: Any) -> None:
        if message is None:
            message = f"Unknown rule type {str(rule_type)[:50]!r}"
        details = kwargs.pop("details", {}) or {}
        details["rule_type"] = str(rule_type)[:50]
        super().__init__(message, details=details, **kwargs)


# Auth Errors
class AuthenticationError(ZoneWatchError):
    default_message = "Authentication required"
    default_error_code = "AUTHENTICATION_REQUIRED"
    default_status_code = 401


class AuthorizationError(ZoneWatchError):
    default_message = "Access denied"
    default_error_code = "ACCESS_DENIED"
    default_status_code = 403


# Not Found Errors (404)
class NotFoundError(ZoneWatchError):
    default_message = "Resource not found"
    default_error_code = "NOT_FOUND"
    default_status_code = 404


class ZoneNotFoundError(NotFoundError):
    default_error_code = "ZONE_NOT_FOUND"

    def __init__(self, zone_id: int, message: str | None = None, **kwargs: Any) -> None:
        if message is None:
            message = f"Zone with id '{zone_id}' not found"
        details = kwargs.pop("details", {}) or {}
        details["zone_id"] = zone_id
        super().__init__(message, details=details, **kwargs)


class CameraNotFoundError(NotFoundError):
    default_error_code = "CAMERA_NOT_FOUND"

    def __init__(self, camera_id: int, message: str | None = None, **kwargs: Any) -> None:
        if message is None:
            message = f"Camera with id '{camera_id}' not found"
        details = kwargs.pop("details", {}) or {}
        details["camera_id"] = camera_id
        super().__init__(message, details=details, **kwargs)


class AlertNotFoundError(NotFoundError):
    default_error_code = "ALERT_NOT_FOUND"

    def __init__(self, alert_id: int, message: str | None = None, **kwargs: Any) -> None:
        if message is None:
            message = f"Alert with id '{alert_id}' not found"
        details = kwargs.pop("details", {}) or {}
        details["alert_id"] = alert_id
        super().__init__(message, details=details, **kwargs)


class ObjectNotFoundError(NotFoundError):
    default_message = "Stored object not found"
    default_error_code = "OBJECT_NOT_FOUND"


# Rate Limiting (429)
class RateLimitError(ZoneWatchError):
    default_message = "Rate limit exceeded"
    default_error_code = "RATE_LIMIT_EXCEEDED"
    default_status_code = 429

    def __init__(
        self,
        message: str | None = None,
        *,
        retry_after: int | None = None,
        limit: int | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {}) or {}
        if retry_after is not None:
            details["retry_after"] = retry_after
        if limit is not None:
            details["limit"] = limit
        self.retry_after = retry_after
        super().__init__(message, details=details, **kwargs)


# External Service Errors (503)
class ExternalServiceError(ZoneWatchError):
    default_message = "External service temporarily unavailable"
    default_error_code = "SERVICE_UNAVAILABLE"
    default_status_code = 503
    service: str | None = None

    def __init__(
        self,
        message: str | None = None,
        *,
        original_error: Exception | None = None,
        service_name: str | None = None,
        **kwargs: Any,
    ) -> None:
        self.original_error = original_error
        self.service_name = service_name or self.service
        details = kwargs.pop("details", {}) or {}
        if self.service_name:
            details["service"] = self.service_name
        super().__init__(message, details=details, **kwargs)

    def to_log_dict(self) -> dict[str, Any]:
        """Convert to dictionary for structured logging.

        Returns:
            Dictionary containing exception details and original error info
        """
        result: dict[str, Any] = {
            "error_code": self.error_code,
            "error_message": self.message,
            "service_name": self.service_name,
            "status_code": self.status_code,
            "original_error": None,
        }
        if self.original_error:
            result["original_error"] = {
                "type": type(self.original_error).__name__,
                "message": str(self.original_error),
            }
        return result


class ObjectStoreUnavailableError(ExternalServiceError):
    """Raised when a snapshot cannot be written to or read from the object store."""

    default_message = "Object store temporarily unavailable"
    default_error_code = "OBJECT_STORE_UNAVAILABLE"
    service = "object_store"


class FaceMatcherUnavailableError(ExternalServiceError):
    """Raised when the face matching service cannot be reached.

    This covers connection errors, timeouts, HTTP 5xx responses and
    responses that cannot be parsed. The ingestion pipeline treats it as
    a degraded dependency and classifies the event as unknown.
    """

    default_message = "Face matching service temporarily unavailable"
    default_error_code = "FACE_MATCHER_UNAVAILABLE"
    service = "face_matcher"


class NotifierUnavailableError(ExternalServiceError):
    default_message = "Notification service temporarily unavailable"
    default_error_code = "NOTIFIER_UNAVAILABLE"
    service = "notifier"


# Internal Errors (500)
class InternalError(ZoneWatchError):
    default_message = "An internal error occurred"
    default_error_code = "INTERNAL_ERROR"
    default_status_code = 500


class ConfigurationError(InternalError):
    default_message = "Configuration error"
    default_error_code = "CONFIGURATION_ERROR"


# Utility functions
def get_exception_status_code(exc: Exception) -> int:
    if isinstance(exc, ZoneWatchError):
        return exc.status_code
    return 500


def get_exception_error_code(exc: Exception) -> str:
    if isinstance(exc, ZoneWatchError):
        return exc.error_code
    return "INTERNAL_ERROR"
