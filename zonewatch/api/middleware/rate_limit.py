"""Per-camera rate limiting of snapshot ingestion.

Counts live in Redis sorted sets scored by request time, one set per
camera, so limits hold across restarts and across server instances. The
limiter is disabled when Redis is not configured and fails open on Redis
errors.

Only authenticated requests are counted, so the check runs inside the
handler once the camera key has been verified.

Usage:
    @router.post("/api/cctv/{camera_id}/snapshot")
    async def ingest_snapshot(
        camera_id: int,
        redis: RedisClient | None = Depends(get_optional_redis),
    ):
        ...  # verify the camera key
        await ingest_rate_limiter.enforce(redis, camera_id)
"""

from __future__ import annotations

import secrets
import time

from zonewatch.core.config import get_settings
from zonewatch.core.exceptions import RateLimitError
from zonewatch.core.logging import get_logger, sanitize_error
from zonewatch.core.redis import RedisClient, get_redis_client

logger = get_logger(__name__)


def get_optional_redis() -> RedisClient | None:
    """Connected Redis client, or None when Redis is not in use."""
    return get_redis_client()


class RateLimiter:
    """Sliding-window limit on snapshots per camera."""

    def __init__(
        self,
        requests_per_minute: int | None = None,
        burst: int | None = None,
        key_prefix: str = "rate_limit:ingest",
    ):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Override requests per minute limit
            burst: Override burst allowance
            key_prefix: Redis key prefix for rate limit counters
        """
        self._requests_per_minute = requests_per_minute
        self._burst = burst
        self.key_prefix = key_prefix
        self.window_seconds = 60

    @property
    def requests_per_minute(self) -> int:
        if self._requests_per_minute is not None:
            return self._requests_per_minute
        return get_settings().ingest_requests_per_minute

    @property
    def burst(self) -> int:
        if self._burst is not None:
            return self._burst
        return get_settings().ingest_rate_limit_burst

    def _make_key(self, camera_id: int) -> str:
        return f"{self.key_prefix}:{camera_id}"

    async def check(self, redis_client: RedisClient, camera_id: int) -> tuple[bool, int, int]:
        """Record a request and check it against the window.

        Returns:
            Tuple of (is_allowed, current_count, limit)
        """
        key = self._make_key(camera_id)
        now = time.time()
        total_limit = self.requests_per_minute + self.burst

        try:
            client = redis_client._ensure_connected()
            pipe = client.pipeline()
            pipe.zremrangebyscore(key, "-inf", now - self.window_seconds)
            pipe.zcard(key)
            pipe.zadd(key, {f"{now}:{secrets.token_hex(4)}": now})
            pipe.expire(key, self.window_seconds + 10)
            results = await pipe.execute()
        except Exception as e:
            # Fail open
            logger.error(f"Rate limit check failed: {sanitize_error(e)}")
            return (True, 0, total_limit)

        # Count is taken before the current request is added
        current_count = int(results[1])
        is_allowed = current_count < total_limit
        if not is_allowed:
            logger.warning(
                f"Rate limit exceeded for camera {camera_id}: {current_count}/{total_limit} requests",
                extra={"camera_id": camera_id, "current_count": current_count, "limit": total_limit},
            )
        return (is_allowed, current_count, total_limit)

    async def enforce(self, redis: RedisClient | None, camera_id: int) -> None:
        """Raise RateLimitError when the camera is over its limit.

        Call only after the camera has authenticated; every checked request
        counts against the camera's window.

        Raises:
            RateLimitError: 429 with Retry-After
        """
        if redis is None or not get_settings().ingest_rate_limit_enabled:
            return

        is_allowed, _current_count, limit = await self.check(redis, camera_id)
        if not is_allowed:
            raise RateLimitError(
                f"Rate limit exceeded. Maximum {limit} snapshots per minute.",
                retry_after=self.window_seconds,
                limit=limit,
            )


ingest_rate_limiter = RateLimiter()
