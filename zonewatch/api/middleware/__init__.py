"""HTTP middleware and request-scoped dependencies."""

from .rate_limit import RateLimiter, get_optional_redis, ingest_rate_limiter
from .request_id import RequestIDMiddleware

__all__ = ["RateLimiter", "RequestIDMiddleware", "get_optional_redis", "ingest_rate_limiter"]
