"""Blob store contract and Firebase Storage REST adapter."""
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import quote

import httpx

from shared.api_errors import parse_service_error

logger = logging.getLogger(__name__)

# Upload body chunk size; progress is reported once per chunk
UPLOAD_CHUNK_SIZE = 256 * 1024


@dataclass(frozen=True)
class UploadProgress:
    """Progress of an in-flight upload."""

    bytes_transferred: int
    total_bytes: int

    @property
    def percent(self) -> float:
        """Get completion as a percentage (100 for empty uploads)."""
        if self.total_bytes == 0:
            return 100.0
        return self.bytes_transferred / self.total_bytes * 100


ProgressCallback = Callable[[UploadProgress], None]


class BlobStoreError(Exception):
    """Raised when an upload fails."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class BlobStore(Protocol):
    """Hosted file storage."""

    async def upload(
        self,
        data: bytes,
        path: str,
        *,
        content_type: str,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """Upload bytes to `path` and return a public download URL."""
        ...


class FirebaseStorageBlobStore:
    """Blob store backed by the Firebase Storage REST API."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        bucket: str,
        base_url: str = "https://firebasestorage.googleapis.com/v0",
        id_token: Callable[[], str | None] | None = None,
    ) -> None:
        self._http_client = http_client
        self._bucket = bucket
        self._base_url = base_url.rstrip("/")
        self._id_token = id_token

    def _get_headers(self, content_type: str) -> dict[str, str]:
        """Get upload headers, including the caller's token when available."""
        headers = {"Content-Type": content_type}
        token = self._id_token() if self._id_token else None
        if token:
            headers["Authorization"] = f"Firebase {token}"
        return headers

    def download_url(self, path: str, token: str) -> str:
        """Build the tokenized public download URL for an object."""
        return (
            f"{self._base_url}/b/{self._bucket}/o/{quote(path, safe='')}"
            f"?alt=media&token={token}"
        )

    async def upload(
        self,
        data: bytes,
        path: str,
        *,
        content_type: str,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """
        Upload bytes and return the download URL.

        Raises:
            BlobStoreError: If the upload fails or the response lacks a download token.
        """
        total = len(data)

        async def body() -> AsyncIterator[bytes]:
            sent = 0
            for start in range(0, total, UPLOAD_CHUNK_SIZE):
                chunk = data[start:start + UPLOAD_CHUNK_SIZE]
                yield chunk
                sent += len(chunk)
                if on_progress:
                    on_progress(UploadProgress(sent, total))

        headers = self._get_headers(content_type)
        headers["Content-Length"] = str(total)
        try:
            response = await self._http_client.post(
                f"{self._base_url}/b/{self._bucket}/o",
                params={"name": path, "uploadType": "media"},
                content=body(),
                headers=headers,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            parsed = parse_service_error(e, "Blob store")
            logger.warning("blob_upload_failed path=%s code=%s", path, parsed.code)
            raise BlobStoreError(parsed.message) from e

        try:
            token = response.json()["downloadTokens"].split(",")[0]
        except (ValueError, KeyError, AttributeError) as e:
            raise BlobStoreError("Upload response did not include a download token") from e

        logger.info("blob_upload_complete path=%s bytes=%s", path, total)
        return self.download_url(path, token)
