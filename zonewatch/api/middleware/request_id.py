"""Request ID middleware.

Takes the X-Request-ID header from the caller or generates one, puts it in
the logging context for the duration of the request and echoes it back in
the response headers.
"""

import uuid
from collections.abc import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from zonewatch.core.logging import set_request_id


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware that generates and propagates request IDs."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        set_request_id(request_id)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            set_request_id(None)
