"""Object store adapters for alert snapshots.

The ingestion pipeline writes each accepted snapshot under a fresh key and
never overwrites an existing object. Readers stream objects back in chunks.

Backends:
    local: Files under ``object_store_path``. Writes go to a temporary file
        that is renamed into place, so a reader never sees a partial object.
        The content type is stored next to the object in a ``.meta`` file.

Usage:
    store = get_object_store()
    key = build_object_key("owner@example.com")
    await store.put(key, image_bytes, "image/jpeg")

    async for chunk in store.get(key):
        ...
"""

from __future__ import annotations

import asyncio
import os
import secrets
import tempfile
from collections.abc import AsyncIterator
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from zonewatch.core.config import get_settings
from zonewatch.core.exceptions import (
    ConfigurationError,
    ObjectNotFoundError,
    ObjectStoreUnavailableError,
    ValidationError,
)
from zonewatch.core.logging import get_logger
from zonewatch.core.time_utils import as_utc, utc_now

if TYPE_CHECKING:
    from zonewatch.core.config import Settings

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
CHUNK_SIZE = 64 * 1024
META_SUFFIX = ".meta"


def _safe_account_segment(account_id: str) -> str:
    # Account ids are email addresses or opaque ids; keep them path-safe
    segment = "".join(c if c.isalnum() or c in "@._-" else "_" for c in account_id)
    if segment in ("", ".", ".."):
        return "_"
    return segment


def build_object_key(account_id: str, now: datetime | None = None) -> str:
    """Derive a fresh object key for a snapshot.

    Format: ``alerts/{account}/{epoch_ms}_{12 hex chars}.jpg``. The random
    suffix makes collisions negligible, so keys are never reused.
    """
    current = as_utc(now) if now is not None else utc_now()
    epoch_ms = int(current.timestamp() * 1000)
    return f"alerts/{_safe_account_segment(account_id)}/{epoch_ms}_{secrets.token_hex(6)}.jpg"


@runtime_checkable
class ObjectStore(Protocol):
    """Durable blob storage keyed by opaque string."""

    async def put(self, key: str, data: bytes, content_type: str) -> None: ...

    def get(self, key: str) -> AsyncIterator[bytes]: ...

    async def delete(self, key: str) -> None: ...

    async def exists(self, key: str) -> bool: ...

    async def content_type(self, key: str) -> str: ...


class LocalObjectStore:
    """Filesystem object store rooted at a directory."""

    def __init__(self, root: str | Path, *, chunk_size: int = CHUNK_SIZE):
        self.root = Path(root).resolve()
        self.chunk_size = chunk_size

    def _path_for(self, key: str) -> Path:
        """Map a key to a path below the root.

        Raises:
            ValidationError: If the key is empty, absolute, or escapes the root
        """
        if not key or key.startswith("/") or "\\" in key:
            raise ValidationError(f"Invalid object key: {key!r}")
        parts = key.split("/")
        if any(part in ("", "..", ".") for part in parts) or key.endswith(META_SUFFIX):
            raise ValidationError(f"Invalid object key: {key!r}")
        path = (self.root / Path(*parts)).resolve()
        if not path.is_relative_to(self.root):
            raise ValidationError(f"Invalid object key: {key!r}")
        return path

    @staticmethod
    def _meta_path(path: Path) -> Path:
        return path.with_name(path.name + META_SUFFIX)

    def _write(self, path: Path, data: bytes, content_type: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            self._meta_path(path).write_text(content_type, encoding="utf-8")
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _delete(self, path: Path) -> None:
        # Concurrent deletes of the same key are a no-op
        path.unlink(missing_ok=True)
        self._meta_path(path).unlink(missing_ok=True)

    async def put(self, key: str, data: bytes, content_type: str = DEFAULT_CONTENT_TYPE) -> None:
        """Write an object.

        Raises:
            ValidationError: If the key is invalid
            ObjectStoreUnavailableError: If the write fails
        """
        path = self._path_for(key)
        try:
            await asyncio.to_thread(self._write, path, data, content_type)
        except OSError as e:
            raise ObjectStoreUnavailableError(
                f"Failed to write object: {e}", original_error=e
            ) from e
        logger.debug(f"Stored object {key} ({len(data)} bytes)")

    async def get(self, key: str) -> AsyncIterator[bytes]:
        """Stream an object in chunks.

        Raises:
            ObjectNotFoundError: If no object is stored under the key
            ObjectStoreUnavailableError: If the object cannot be read
        """
        path = self._path_for(key)
        try:
            f = await asyncio.to_thread(path.open, "rb")
        except FileNotFoundError:
            raise ObjectNotFoundError(f"Object not found: {key}") from None
        except OSError as e:
            raise ObjectStoreUnavailableError(
                f"Failed to read object: {e}", original_error=e
            ) from e
        try:
            while True:
                chunk = await asyncio.to_thread(f.read, self.chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            f.close()

    async def read(self, key: str) -> bytes:
        """Read a whole object into memory."""
        return b"".join([chunk async for chunk in self.get(key)])

    async def content_type(self, key: str) -> str:
        """Return the content type recorded for an object."""
        meta = self._meta_path(self._path_for(key))
        try:
            return (await asyncio.to_thread(meta.read_text, encoding="utf-8")).strip()
        except FileNotFoundError:
            return DEFAULT_CONTENT_TYPE

    async def delete(self, key: str) -> None:
        """Delete an object. Deleting a missing object is not an error.

        Raises:
            ObjectStoreUnavailableError: If the object exists but cannot be removed
        """
        path = self._path_for(key)
        try:
            await asyncio.to_thread(self._delete, path)
        except OSError as e:
            raise ObjectStoreUnavailableError(
                f"Failed to delete object: {e}", original_error=e
            ) from e

    async def exists(self, key: str) -> bool:
        return await asyncio.to_thread(self._path_for(key).is_file)


def get_object_store(settings: Settings | None = None) -> LocalObjectStore:
    """Build the configured object store backend.

    Raises:
        ConfigurationError: If the backend is unsupported or has no root path
    """
    settings = settings or get_settings()
    if settings.object_store_backend != "local":
        raise ConfigurationError(
            f"Unsupported object store backend: {settings.object_store_backend}"
        )
    if not settings.object_store_path:
        raise ConfigurationError("object_store_path is not configured")
    return LocalObjectStore(settings.object_store_path)
