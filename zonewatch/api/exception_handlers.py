"""Global exception handlers for the FastAPI application.

Every error leaves the API in one body shape:

    {
        "error": {
            "code": "ZONE_NOT_FOUND",
            "message": "Zone with id '3' not found",
            "details": {"zone_id": 3},
            "request_id": "a1b2c3d4",
            "timestamp": "2026-01-01T00:00:00+00:00"
        }
    }

Unhandled exceptions become a 500 whose message has credentials and file
paths removed.

Usage:
    app = FastAPI()
    register_exception_handlers(app)
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from zonewatch.core.exceptions import ExternalServiceError, RateLimitError, ZoneWatchError
from zonewatch.core.logging import get_logger
from zonewatch.core.logging import get_request_id as get_context_request_id

logger = get_logger(__name__)

STATUS_TO_CODE = {
    400: "BAD_REQUEST",
    401: "AUTHENTICATION_REQUIRED",
    403: "ACCESS_DENIED",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    413: "PAYLOAD_TOO_LARGE",
    422: "VALIDATION_ERROR",
    429: "RATE_LIMIT_EXCEEDED",
    500: "INTERNAL_ERROR",
    503: "SERVICE_UNAVAILABLE",
}


def get_request_id(request: Request) -> str | None:
    """Request ID set by RequestIDMiddleware, falling back to the header."""
    return get_context_request_id() or request.headers.get("X-Request-ID")


def build_error_response(
    error_code: str,
    message: str,
    status_code: int,
    request: Request | None = None,
    details: dict[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    """Build a standardized error response.

    Args:
        error_code: Machine-readable error code
        message: Human-readable error message
        status_code: HTTP status code
        request: Optional request for extracting request ID
        details: Optional additional error details
        headers: Optional headers (e.g., Retry-After)

    Returns:
        JSONResponse with standardized error format
    """
    error_body: dict[str, Any] = {
        "code": error_code,
        "message": message,
    }

    if details:
        error_body["details"] = details

    if request:
        request_id = get_request_id(request)
        if request_id:
            error_body["request_id"] = request_id

    error_body["timestamp"] = datetime.now(UTC).isoformat()

    return JSONResponse(
        status_code=status_code,
        content={"error": error_body},
        headers=headers,
    )


def _log_context(request: Request) -> dict[str, Any]:
    context: dict[str, Any] = {
        "path": str(request.url.path),
        "method": request.method,
    }
    request_id = get_request_id(request)
    if request_id:
        context["request_id"] = request_id
    return context


async def zonewatch_exception_handler(request: Request, exc: ZoneWatchError) -> JSONResponse:
    """Handle ZoneWatchError and its subclasses."""
    log_context = _log_context(request)
    log_context["error_code"] = exc.error_code
    log_context["status_code"] = exc.status_code

    if exc.status_code >= 500:
        logger.error(f"Internal error: {exc.message}", extra=log_context, exc_info=True)
    else:
        logger.info(f"Client error: {exc.message}", extra=log_context)

    return build_error_response(
        error_code=exc.error_code,
        message=exc.message,
        status_code=exc.status_code,
        request=request,
        details=exc.details or None,
    )


async def rate_limit_exception_handler(request: Request, exc: RateLimitError) -> JSONResponse:
    """Handle rate limit errors, adding a Retry-After header when known."""
    logger.warning("Rate limit exceeded", extra=_log_context(request))

    headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after is not None else None
    return build_error_response(
        error_code=exc.error_code,
        message=exc.message,
        status_code=exc.status_code,
        request=request,
        details=exc.details,
        headers=headers,
    )


async def external_service_exception_handler(
    request: Request, exc: ExternalServiceError
) -> JSONResponse:
    """Handle dependency failures that reach the HTTP layer."""
    log_context = _log_context(request)
    log_context.update(exc.to_log_dict())
    logger.error(f"External service error ({exc.service_name}): {exc.message}", extra=log_context)

    # The failing dependency is not named to the caller
    return build_error_response(
        error_code="SERVICE_UNAVAILABLE",
        message="Service temporarily unavailable",
        status_code=exc.status_code,
        request=request,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Convert request validation errors to field-level details."""
    errors = []
    for error in exc.errors():
        loc = error.get("loc", ())
        field = ".".join(str(part) for part in loc) if loc else "unknown"
        input_value = error.get("input")
        errors.append(
            {
                "field": field,
                "message": error.get("msg", "Validation error"),
                "value": str(input_value)[:100] if input_value is not None else None,
            }
        )

    log_context = _log_context(request)
    log_context["error_count"] = len(errors)
    logger.info("Request validation failed", extra=log_context)

    return build_error_response(
        error_code="VALIDATION_ERROR",
        message="Request validation failed",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        request=request,
        details={"errors": errors},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Convert HTTPException to the standard error format."""
    message = str(exc.detail) if exc.detail else "An error occurred"
    log_context = _log_context(request)
    log_context["status_code"] = exc.status_code

    if exc.status_code >= 500:
        logger.error(f"HTTP error: {message}", extra=log_context)
    elif exc.status_code >= 400:
        logger.info(f"Client error: {message}", extra=log_context)

    return build_error_response(
        error_code=STATUS_TO_CODE.get(exc.status_code, "ERROR"),
        message=message,
        status_code=exc.status_code,
        request=request,
        headers=exc.headers,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions."""
    log_context = _log_context(request)
    log_context["exception_type"] = type(exc).__name__
    logger.error(f"Unhandled exception: {exc!s}", extra=log_context, exc_info=True)

    return build_error_response(
        error_code="INTERNAL_ERROR",
        message="An internal error occurred",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        request=request,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application."""
    # Most specific first
    app.add_exception_handler(
        RateLimitError,
        rate_limit_exception_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        ExternalServiceError,
        external_service_exception_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        ZoneWatchError,
        zonewatch_exception_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        RequestValidationError,
        validation_exception_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        StarletteHTTPException,
        http_exception_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.info("Exception handlers registered")
