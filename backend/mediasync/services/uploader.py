"""Multipart media upload to the inspection server."""

from __future__ import annotations

import logging

import httpx

from mediasync.config import settings
from mediasync.exceptions import UploadFailed

logger = logging.getLogger(__name__)

UPLOAD_FIELD = "files"


class MediaUploader:
    """POSTs one payload per request as multipart form data under ``files``."""

    def __init__(
        self,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = (base_url or settings.server_url).rstrip("/")
        self._transport = transport

    def resolve(self, destination: str) -> str:
        """Absolute URLs pass through; paths are joined to the server URL."""
        if destination.startswith(("http://", "https://")):
            return destination
        return f"{self._base_url}/{destination.lstrip('/')}"

    async def upload(
        self,
        destination: str,
        payload: bytes,
        *,
        filename: str,
        content_type: str,
        timeout: float,
    ) -> int:
        """Upload ``payload``. Returns the 2xx status code.

        Raises:
            UploadFailed: on non-2xx status, timeout or transport error.
        """
        url = self.resolve(destination)
        files = {UPLOAD_FIELD: (filename, payload, content_type)}

        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                resp = await client.post(url, files=files)
        except httpx.TimeoutException as e:
            raise UploadFailed(f"Upload timed out after {timeout:g}s", timed_out=True) from e
        except (httpx.HTTPError, OSError) as e:
            raise UploadFailed(f"Network error: {e}") from e

        if not resp.is_success:
            raise UploadFailed(
                f"Upload failed with status {resp.status_code}", status_code=resp.status_code
            )

        logger.debug("Uploaded %s (%d bytes) -> %s [%d]", filename, len(payload), url, resp.status_code)
        return resp.status_code
