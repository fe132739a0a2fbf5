"""Redis connection module.

Redis is optional. When ``redis_url`` is configured it backs the
cross-instance retention lock and the ingestion rate limiter.
"""

import asyncio
import contextlib
import random

from redis.asyncio import ConnectionPool, Redis
from redis.asyncio.lock import Lock
from redis.exceptions import ConnectionError, TimeoutError

from zonewatch.core.config import get_settings
from zonewatch.core.logging import get_logger

logger = get_logger(__name__)


class RedisClient:
    """Async Redis client with connection pooling and retrying connect."""

    def __init__(self, redis_url: str | None = None):
        """Initialize Redis client.

        Args:
            redis_url: Redis connection URL. If not provided, uses settings.
        """
        settings = get_settings()
        url = redis_url or settings.redis_url
        if not url:
            raise ValueError("redis_url is not configured")
        self._redis_url = url
        self._pool: ConnectionPool | None = None
        self._client: Redis | None = None
        self._max_retries = 3
        self._base_delay = 1.0
        self._max_delay = 30.0
        self._jitter_factor = 0.25

    def _calculate_backoff_delay(self, attempt: int) -> float:
        """Calculate exponential backoff delay with jitter.

        Args:
            attempt: Current attempt number (1-indexed)

        Returns:
            Delay in seconds
        """
        delay: float = min(self._base_delay * (2 ** (attempt - 1)), self._max_delay)
        jitter: float = delay * random.uniform(0, self._jitter_factor)  # noqa: S311
        return delay + jitter

    async def connect(self) -> None:
        """Establish Redis connection with exponential backoff retry logic."""
        for attempt in range(1, self._max_retries + 1):
            try:
                self._pool = ConnectionPool.from_url(
                    self._redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_connect_timeout=5,
                    socket_keepalive=True,
                    health_check_interval=30,
                    max_connections=10,
                )
                self._client = Redis(connection_pool=self._pool)
                await self._client.ping()  # type: ignore
                logger.info("Successfully connected to Redis")
                return
            except (ConnectionError, TimeoutError) as e:
                logger.warning(
                    f"Redis connection attempt {attempt}/{self._max_retries} failed: {e}"
                )
                if attempt < self._max_retries:
                    backoff_delay = self._calculate_backoff_delay(attempt)
                    logger.info(f"Retrying in {backoff_delay:.2f} seconds...")
                    await asyncio.sleep(backoff_delay)
                else:
                    logger.error("Failed to connect to Redis after all retries")
                    raise

    async def disconnect(self) -> None:
        """Close Redis connection and cleanup resources."""
        with contextlib.suppress(Exception):
            if self._client:
                await self._client.aclose()
                self._client = None

            if self._pool:
                await self._pool.disconnect()
                self._pool = None

            logger.info("Redis connection closed")

    def _ensure_connected(self) -> Redis:
        """Ensure Redis client is connected.

        Raises:
            RuntimeError: If client is not connected
        """
        if not self._client:
            raise RuntimeError("Redis client not connected. Call connect() first.")
        return self._client

    def lock(self, name: str, *, timeout: float, blocking_timeout: float) -> Lock:
        """Create a distributed lock.

        Args:
            name: Lock key
            timeout: Seconds after which the lock expires if never released
            blocking_timeout: Seconds to wait for acquisition before giving up
        """
        return self._ensure_connected().lock(
            name, timeout=timeout, blocking_timeout=blocking_timeout
        )


# Global Redis client instance
_redis_client: RedisClient | None = None


def get_redis_client() -> RedisClient | None:
    """Return the connected client, or None when Redis is not in use."""
    return _redis_client


async def init_redis() -> RedisClient | None:
    """Initialize Redis client for application startup.

    Returns:
        Connected RedisClient, or None when redis_url is not configured
    """
    global _redis_client  # noqa: PLW0603

    if not get_settings().redis_url:
        logger.info("Redis not configured; using in-process locks and no rate limiting")
        return None

    if _redis_client is None:
        client = RedisClient()
        await client.connect()
        _redis_client = client

    return _redis_client


async def close_redis() -> None:
    """Close Redis client for application shutdown."""
    global _redis_client  # noqa: PLW0603

    if _redis_client:
        await _redis_client.disconnect()
        _redis_client = None
