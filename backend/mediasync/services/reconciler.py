"""Background reconciler — drains the pending-upload queue against the server."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from mediasync.config import settings
from mediasync.schemas.sync import SyncResult, SyncStatus
from mediasync.services.signals import Signal, Unsubscribe

if TYPE_CHECKING:
    from mediasync.services.connectivity import ConnectivityObserver
    from mediasync.services.upload_queue import PendingUpload, UploadQueue
    from mediasync.services.uploader import MediaUploader

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "sync_pending_uploads"


class ReconcilerState(str, Enum):
    STOPPED = "stopped"
    IDLE = "idle"
    SYNCING = "syncing"


class SyncReconciler:
    """Delivers queued media once the server is reachable.

    Drains run on a periodic timer, when connectivity comes back, when the
    host app is foregrounded, and on demand via ``sync_once()``. Items are
    uploaded one at a time. Overlapping triggers collapse into a single drain.
    """

    def __init__(
        self,
        queue: UploadQueue,
        uploader: MediaUploader,
        connectivity: ConnectivityObserver,
        visibility: Signal[bool] | None = None,
        sync_interval: float | None = None,
        max_retries: int | None = None,
        upload_timeout: float | None = None,
    ):
        self._queue = queue
        self._uploader = uploader
        self._connectivity = connectivity
        self._visibility = visibility
        self.sync_interval = sync_interval or settings.sync_interval_seconds
        self.max_retries = max_retries if max_retries is not None else settings.max_retries
        self.upload_timeout = upload_timeout or settings.background_upload_timeout

        self._state = ReconcilerState.STOPPED
        self._running = False
        self._syncing = False
        self._generation = 0
        self._scheduler: AsyncIOScheduler | None = None
        self._unsubscribers: list[Unsubscribe] = []
        self._background_tasks: set[asyncio.Task] = set()
        self._status: Signal[SyncStatus] = Signal("sync-status")
        self._last_status: SyncStatus | None = None

    @property
    def state(self) -> ReconcilerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._running

    @property
    def last_status(self) -> SyncStatus | None:
        return self._last_status

    def subscribe(self, listener: Callable[[SyncStatus], None]) -> Unsubscribe:
        """Receive status changes. Returns the unsubscribe handle."""
        return self._status.subscribe(listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Open the queue, register triggers and run one immediate sync."""
        if self._running:
            logger.debug("Sync reconciler already running")
            return

        # Claimed before the first await so a concurrent start() sees it
        self._running = True
        self._generation += 1
        generation = self._generation
        try:
            await self._queue.initialize()
        except Exception:
            if generation == self._generation:
                self._running = False
            raise

        if not self._running or generation != self._generation:
            logger.info("Sync reconciler stopped while opening the queue")
            return

        self._state = ReconcilerState.IDLE

        self._unsubscribers.append(self._connectivity.subscribe(self._on_connectivity_change))
        if self._visibility is not None:
            self._unsubscribers.append(self._visibility.subscribe(self._on_visibility_change))

        self._scheduler = AsyncIOScheduler(
            job_defaults={"coalesce": True, "max_instances": 1}
        )
        self._scheduler.add_job(
            self._sync_in_background,
            "interval",
            seconds=self.sync_interval,
            args=["timer"],
            id=SYNC_JOB_ID,
            name="Sync pending uploads",
        )
        self._scheduler.start()
        logger.info(
            "Sync reconciler started — every %ss, max %d attempts per item",
            self.sync_interval, self.max_retries,
        )

        await self.sync_once()

    async def stop(self) -> None:
        """Cancel the timer and unsubscribe triggers. An in-flight drain finishes."""
        if self._scheduler is not None:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
            self._scheduler = None

        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

        was_running = self._running
        self._running = False
        self._generation += 1
        if not self._syncing:
            self._state = ReconcilerState.STOPPED
        if was_running:
            logger.info("Sync reconciler stopped")

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def _on_connectivity_change(self, online: bool) -> None:
        if online:
            logger.info("Network reachable — syncing pending uploads")
            self._trigger("online")

    def _on_visibility_change(self, visible: bool) -> None:
        if visible:
            logger.info("App visible — checking for pending uploads")
            self._trigger("visible")

    def _trigger(self, reason: str) -> None:
        if not self._running:
            return
        task = asyncio.create_task(self._sync_in_background(reason))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _sync_in_background(self, reason: str) -> None:
        if not self._running:
            return
        try:
            await self.sync_once()
        except Exception as e:
            logger.error("Background sync (%s) failed: %s", reason, e)

    # ------------------------------------------------------------------
    # Drain
    # ------------------------------------------------------------------

    async def sync_once(self) -> SyncResult:
        """Attempt delivery of every eligible queued item.

        Per-item failures are recorded on the item and never raised. Store
        failures are reported as an ``error`` status and re-raised.
        """
        if self._syncing:
            logger.debug("Sync already in progress — skipping overlapping drain")
            return SyncResult()

        self._syncing = True
        try:
            return await self._drain()
        except Exception:
            self._emit(SyncStatus(type="error", pending_count=await self._safe_count()))
            raise
        finally:
            self._syncing = False
            self._state = ReconcilerState.IDLE if self._running else ReconcilerState.STOPPED

    async def _drain(self) -> SyncResult:
        result = SyncResult()

        pending = await self._queue.list_all()
        result.total = len(pending)

        if not pending:
            self._emit(SyncStatus(type="idle", pending_count=0))
            return result

        if not self._connectivity.is_online():
            logger.info("Offline — skipping sync of %d pending uploads", len(pending))
            result.skipped = len(pending)
            self._emit(SyncStatus(type="offline", pending_count=len(pending)))
            return result

        logger.info("Found %d pending uploads to sync", len(pending))
        self._state = ReconcilerState.SYNCING
        self._emit(SyncStatus(type="syncing", pending_count=len(pending)))

        for item in pending:
            if item.attempt_count >= self.max_retries:
                logger.debug("Skipping upload %s — max retries reached", item.id)
                result.skipped += 1
                continue

            result.attempted += 1
            error = await self._attempt(item)
            if error is None:
                await self._queue.remove(item.id)
                result.succeeded += 1
                logger.info("Synced upload %s", item.id)
            else:
                await self._queue.record_failure(item.id, error)
                result.failed += 1

        remaining = await self._queue.count()
        if result.succeeded > 0:
            self._emit(SyncStatus(type="success", synced_count=result.succeeded, pending_count=remaining))
        elif result.failed > 0:
            self._emit(SyncStatus(type="error", pending_count=remaining))
        else:
            self._emit(SyncStatus(type="idle", pending_count=remaining))

        logger.info(
            "Sync complete: %d succeeded, %d failed, %d skipped (%d remaining)",
            result.succeeded, result.failed, result.skipped, remaining,
        )
        return result

    async def _attempt(self, item: PendingUpload) -> str | None:
        """Upload one item. Returns None on success, else the failure message."""
        try:
            payload = await self._queue.read_payload(item)
            await self._uploader.upload(
                item.destination,
                payload,
                filename=item.filename,
                content_type=item.content_type,
                timeout=self.upload_timeout,
            )
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.warning(
                "Failed to sync upload %s (attempt %d): %s", item.id, item.attempt_count + 1, message
            )
            return message
        return None

    def _emit(self, status: SyncStatus) -> None:
        self._last_status = status
        self._status.emit(status)

    async def _safe_count(self) -> int:
        try:
            return await self._queue.count()
        except Exception as e:
            logger.error("Cannot count pending uploads: %s", e)
            return self._last_status.pending_count if self._last_status else 0
