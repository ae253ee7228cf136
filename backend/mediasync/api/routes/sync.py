"""Sync routes — manual "sync now", status badge, platform signals."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from mediasync.schemas.sync import ConnectivityEvent, SyncOverview, SyncResult, VisibilityEvent
from mediasync.services import get_connectivity, get_reconciler, get_upload_queue, get_visibility
from mediasync.services.connectivity import HttpConnectivityMonitor
from mediasync.services.reconciler import SyncReconciler
from mediasync.services.signals import Signal
from mediasync.services.upload_queue import UploadQueue

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=SyncResult)
async def sync_now(reconciler: SyncReconciler = Depends(get_reconciler)):
    """Drain the queue immediately."""
    logger.info("Manual sync triggered")
    return await reconciler.sync_once()


@router.get("/status", response_model=SyncOverview)
async def sync_status(
    reconciler: SyncReconciler = Depends(get_reconciler),
    connectivity: HttpConnectivityMonitor = Depends(get_connectivity),
    queue: UploadQueue = Depends(get_upload_queue),
):
    """Reconciler state, reachability and the most recent status event."""
    return SyncOverview(
        state=reconciler.state.value,
        online=connectivity.is_online(),
        pending_uploads=await queue.count(),
        last_status=reconciler.last_status,
    )


@router.post("/visibility", status_code=202)
async def report_visibility(
    event: VisibilityEvent,
    visibility: Signal[bool] = Depends(get_visibility),
):
    """The capture UI was foregrounded (or hidden)."""
    visibility.emit(event.visible)
    return {"accepted": True}


@router.post("/connectivity", status_code=202)
async def report_connectivity(
    event: ConnectivityEvent,
    connectivity: HttpConnectivityMonitor = Depends(get_connectivity),
):
    """Platform online/offline event from the host."""
    connectivity.report(event.online)
    return {"accepted": True, "state": connectivity.state.value}
