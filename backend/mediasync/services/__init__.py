"""Agent services — singleton registry."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from mediasync.config import settings

if TYPE_CHECKING:
    from mediasync.services.capture import CaptureService
    from mediasync.services.connectivity import HttpConnectivityMonitor
    from mediasync.services.reconciler import SyncReconciler
    from mediasync.services.signals import Signal
    from mediasync.services.upload_queue import UploadQueue
    from mediasync.services.uploader import MediaUploader

logger = logging.getLogger(__name__)

_upload_queue: UploadQueue | None = None
_uploader: MediaUploader | None = None
_connectivity: HttpConnectivityMonitor | None = None
_visibility: Signal[bool] | None = None
_reconciler: SyncReconciler | None = None
_capture_service: CaptureService | None = None


async def init_services() -> None:
    """Create and wire up all service singletons, then start background work."""
    global _upload_queue, _uploader, _connectivity, _visibility
    global _reconciler, _capture_service

    from mediasync.services.capture import CaptureService
    from mediasync.services.connectivity import HttpConnectivityMonitor
    from mediasync.services.reconciler import SyncReconciler
    from mediasync.services.signals import Signal
    from mediasync.services.upload_queue import UploadQueue
    from mediasync.services.uploader import MediaUploader

    # StorageUnavailable here aborts startup
    _upload_queue = UploadQueue()
    await _upload_queue.initialize()

    _uploader = MediaUploader()
    _connectivity = HttpConnectivityMonitor()
    _visibility = Signal("visibility")
    _capture_service = CaptureService(_upload_queue, _uploader, _connectivity)
    _reconciler = SyncReconciler(
        queue=_upload_queue,
        uploader=_uploader,
        connectivity=_connectivity,
        visibility=_visibility,
    )

    await _connectivity.start()
    try:
        await _reconciler.start()
    except Exception as e:
        # Reconciler stays running; the timer retries on the next cycle
        logger.error("Initial sync failed: %s", e)
    logger.info("Services initialized (queue, connectivity, reconciler) — server %s", settings.server_url)


async def shutdown_services() -> None:
    """Stop background work, close the queue and clear the registry."""
    global _upload_queue, _uploader, _connectivity, _visibility
    global _reconciler, _capture_service
    if _reconciler:
        await _reconciler.stop()
        _reconciler = None
    _capture_service = None
    if _connectivity:
        await _connectivity.stop()
        _connectivity = None
    _visibility = None
    _uploader = None
    if _upload_queue:
        await _upload_queue.close()
        _upload_queue = None


def get_upload_queue() -> UploadQueue:
    if _upload_queue is None:
        raise RuntimeError("Services not initialized — call init_services() first")
    return _upload_queue


def get_connectivity() -> HttpConnectivityMonitor:
    if _connectivity is None:
        raise RuntimeError("Services not initialized — call init_services() first")
    return _connectivity


def get_visibility() -> Signal[bool]:
    if _visibility is None:
        raise RuntimeError("Services not initialized — call init_services() first")
    return _visibility


def get_reconciler() -> SyncReconciler:
    if _reconciler is None:
        raise RuntimeError("Services not initialized — call init_services() first")
    return _reconciler


def get_capture_service() -> CaptureService:
    if _capture_service is None:
        raise RuntimeError("Services not initialized — call init_services() first")
    return _capture_service
