"""Interactive capture path — upload now, fall back to the durable queue."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import TYPE_CHECKING

from mediasync.config import settings
from mediasync.exceptions import UploadFailed
from mediasync.schemas.uploads import CaptureOutcome
from mediasync.services.upload_queue import DEFAULT_CONTENT_TYPE, DEFAULT_FILENAME

if TYPE_CHECKING:
    from mediasync.services.connectivity import ConnectivityObserver
    from mediasync.services.upload_queue import UploadQueue
    from mediasync.services.uploader import MediaUploader

logger = logging.getLogger(__name__)


class CaptureService:
    """Hands captured media to the server, or to the queue when that fails."""

    def __init__(
        self,
        queue: UploadQueue,
        uploader: MediaUploader,
        connectivity: ConnectivityObserver,
        timeout: float | None = None,
        retries: int | None = None,
        retry_delay: float | None = None,
    ):
        self._queue = queue
        self._uploader = uploader
        self._connectivity = connectivity
        self._timeout = timeout or settings.interactive_upload_timeout
        self._retries = retries if retries is not None else settings.interactive_retries
        self._retry_delay = retry_delay if retry_delay is not None else settings.interactive_retry_delay

    async def submit(
        self,
        owner_id: int,
        payload: bytes,
        destination: str,
        *,
        filename: str | None = None,
        content_type: str | None = None,
        defer: bool = False,
    ) -> CaptureOutcome:
        """Try an immediate upload; queue the payload if skipped or failed."""
        if defer or not self._connectivity.is_online():
            reason = "deferred" if defer else "offline"
            upload_id = await self._queue.enqueue(
                owner_id, payload, destination, filename=filename, content_type=content_type
            )
            logger.info("Capture for owner %d queued without upload (%s)", owner_id, reason)
            return CaptureOutcome(uploaded=False, queued_id=upload_id)

        try:
            await self._upload_with_retry(
                destination,
                payload,
                filename=filename or DEFAULT_FILENAME,
                content_type=content_type or DEFAULT_CONTENT_TYPE,
            )
        except UploadFailed as e:
            upload_id = await self._queue.enqueue(
                owner_id, payload, destination, filename=filename, content_type=content_type
            )
            logger.warning(
                "Immediate upload for owner %d failed (%s) — stored locally as %s",
                owner_id, e, upload_id,
            )
            return CaptureOutcome(uploaded=False, queued_id=upload_id, error=str(e))

        return CaptureOutcome(uploaded=True)

    async def _upload_with_retry(
        self,
        destination: str,
        payload: bytes,
        *,
        filename: str,
        content_type: str,
    ) -> None:
        """Exponential backoff with jitter; only retryable failures are retried."""
        for attempt in range(self._retries + 1):
            try:
                await self._uploader.upload(
                    destination,
                    payload,
                    filename=filename,
                    content_type=content_type,
                    timeout=self._timeout,
                )
                return
            except UploadFailed as e:
                if not e.retryable or attempt == self._retries:
                    raise
                delay = self._retry_delay * 2 ** attempt + random.uniform(0, self._retry_delay)
                logger.info(
                    "Upload attempt %d failed, retrying in %.1fs: %s", attempt + 1, delay, e
                )
                await asyncio.sleep(delay)
