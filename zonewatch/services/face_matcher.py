"""HTTP client for the external face matching service.

The matcher searches a collection of enrolled faces for the face in an
image and returns zero or more candidate matches. An empty result means
the person is unknown.

Error Handling:
    - Connection errors: Raise FaceMatcherUnavailableError
    - Timeouts: Raise FaceMatcherUnavailableError
    - HTTP 5xx errors: Raise FaceMatcherUnavailableError
    - Unparseable responses: Raise FaceMatcherUnavailableError
    - HTTP 4xx errors (e.g. no face found in the image): Return an empty list

The ingestion pipeline catches FaceMatcherUnavailableError and proceeds as
if no match was found.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx

from zonewatch.core.config import get_settings
from zonewatch.core.exceptions import FaceMatcherUnavailableError
from zonewatch.core.logging import get_logger, sanitize_error

if TYPE_CHECKING:
    from zonewatch.core.config import Settings

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class FaceMatch:
    """One candidate match from the enrolled collection."""

    face_id: str
    similarity: float
    external_id: str | None = None


@runtime_checkable
class FaceMatcher(Protocol):
    """Anything that can search an image against enrolled faces."""

    async def search(self, image: bytes) -> list[FaceMatch]: ...


class HttpFaceMatcher:
    """Client for a face search service speaking JSON over HTTP.

    Request:
        POST {face_matcher_url}/collections/{collection_id}/search
        multipart field "image", form fields "threshold" and "max_faces"

    Response:
        {"matches": [{"face_id": "...", "similarity": 98.2, "external_id": "..."}]}

    Security: Sends the X-API-Key header when face_matcher_api_key is configured.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize the client from settings."""
        settings = settings or get_settings()
        self._base_url = (settings.face_matcher_url or "").rstrip("/")
        self._collection_id = settings.face_matcher_collection_id or ""
        self._api_key = settings.face_matcher_api_key
        self._threshold = settings.face_match_threshold
        self._max_faces = settings.face_matcher_max_faces
        self._timeout = httpx.Timeout(
            connect=settings.matcher_connect_timeout_seconds,
            read=settings.matcher_timeout_seconds,
            write=settings.matcher_timeout_seconds,
            pool=settings.matcher_connect_timeout_seconds,
        )
        self._client: httpx.AsyncClient | None = None

    def _get_auth_headers(self) -> dict[str, str]:
        if self._api_key:
            return {"X-API-Key": self._api_key}
        return {}

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        """Close HTTP client and cleanup resources."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def search_url(self) -> str:
        return f"{self._base_url}/collections/{self._collection_id}/search"

    async def health_check(self) -> bool:
        """Check if the face matching service is reachable.

        Returns:
            True if the service answered its health endpoint, False otherwise
        """
        try:
            response = await self._get_client().get(
                f"{self._base_url}/health", headers=self._get_auth_headers()
            )
            response.raise_for_status()
            return True
        except (httpx.ConnectError, httpx.TimeoutException) as e:
            logger.warning(f"Face matcher health check failed: {e}")
            return False
        except httpx.HTTPStatusError as e:
            logger.warning(f"Face matcher health check returned error status: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error during face matcher health check: {sanitize_error(e)}")
            return False

    async def search(self, image: bytes) -> list[FaceMatch]:
        """Search the enrolled collection for the face in ``image``.

        Args:
            image: Raw JPEG bytes

        Returns:
            Candidate matches at or above the configured threshold (possibly empty)

        Raises:
            FaceMatcherUnavailableError: If the service cannot answer
        """
        try:
            response = await self._get_client().post(
                self.search_url,
                files={"image": ("snapshot.jpg", image, "image/jpeg")},
                data={"threshold": str(self._threshold), "max_faces": str(self._max_faces)},
                headers=self._get_auth_headers(),
            )
        except httpx.TimeoutException as e:
            raise FaceMatcherUnavailableError(
                f"Face matcher request timed out: {e}", original_error=e
            ) from e
        except httpx.RequestError as e:
            raise FaceMatcherUnavailableError(
                f"Cannot reach face matcher: {e}", original_error=e
            ) from e

        if response.status_code >= 500:
            raise FaceMatcherUnavailableError(
                f"Face matcher returned server error {response.status_code}"
            )
        if response.status_code >= 400:
            # The service rejects images it cannot find a face in
            logger.warning(f"Face matcher rejected image with status {response.status_code}")
            return []

        try:
            payload = response.json()
            return self._parse_matches(payload)
        except (ValueError, KeyError, TypeError) as e:
            raise FaceMatcherUnavailableError(
                f"Malformed face matcher response: {e}", original_error=e
            ) from e

    def _parse_matches(self, payload: Any) -> list[FaceMatch]:
        matches: list[FaceMatch] = []
        for item in payload["matches"]:
            similarity = float(item.get("similarity", 0.0))
            if similarity < self._threshold:
                continue
            matches.append(
                FaceMatch(
                    face_id=str(item["face_id"]),
                    similarity=similarity,
                    external_id=item.get("external_id"),
                )
            )
        return matches
