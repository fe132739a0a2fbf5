"""Core infrastructure components."""

from zonewatch.core.config import Settings, get_settings
from zonewatch.core.database import (
    close_db,
    get_db,
    get_engine,
    get_session,
    get_session_factory,
    init_db,
)
from zonewatch.core.logging import (
    get_logger,
    get_request_id,
    set_request_id,
    setup_logging,
)
from zonewatch.core.redis import (
    RedisClient,
    close_redis,
    get_redis_client,
    init_redis,
)

__all__ = [
    "RedisClient",
    "Settings",
    "close_db",
    "close_redis",
    "get_db",
    "get_engine",
    "get_logger",
    "get_redis_client",
    "get_request_id",
    "get_session",
    "get_session_factory",
    "get_settings",
    "init_db",
    "init_redis",
    "set_request_id",
    "setup_logging",
]
