"""Pending upload routes — capture hand-off, per-owner badges, cleanup."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status

from mediasync.exceptions import PayloadError, UploadNotFound
from mediasync.schemas.uploads import (
    CaptureOutcome,
    PendingCount,
    PendingUploadInfo,
    PurgeResponse,
    QueueStats,
    RequeueResponse,
)
from mediasync.services import get_capture_service, get_reconciler, get_upload_queue
from mediasync.services.capture import CaptureService
from mediasync.services.reconciler import SyncReconciler
from mediasync.services.upload_queue import UploadQueue

router = APIRouter()


@router.post("", response_model=CaptureOutcome)
async def submit_capture(
    owner_id: int = Form(...),
    destination: str = Form(...),
    defer: bool = Form(False),
    file: UploadFile = File(...),
    capture: CaptureService = Depends(get_capture_service),
):
    """Upload a captured file now, or keep it locally until the server is reachable."""
    payload = await file.read()
    if not payload:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Empty file")

    return await capture.submit(
        owner_id,
        payload,
        destination,
        filename=file.filename,
        content_type=file.content_type,
        defer=defer,
    )


@router.get("", response_model=list[PendingUploadInfo])
async def list_pending(
    owner_id: int | None = None,
    queue: UploadQueue = Depends(get_upload_queue),
):
    """Queued items, optionally for one owner record."""
    items = await queue.list_by_owner(owner_id) if owner_id is not None else await queue.list_all()
    return [PendingUploadInfo.model_validate(item) for item in items]


@router.get("/count", response_model=PendingCount)
async def count_pending(
    owner_id: int | None = None,
    queue: UploadQueue = Depends(get_upload_queue),
):
    """Cheap count for "N uploads pending" badges."""
    if owner_id is not None:
        return PendingCount(pending=await queue.count_by_owner(owner_id), owner_id=owner_id)
    return PendingCount(pending=await queue.count())


@router.get("/stats", response_model=QueueStats)
async def queue_stats(
    queue: UploadQueue = Depends(get_upload_queue),
    reconciler: SyncReconciler = Depends(get_reconciler),
):
    """Queue and spool usage."""
    return await queue.stats(reconciler.max_retries)


@router.delete("/exhausted", response_model=PurgeResponse)
async def purge_exhausted(
    owner_id: int | None = None,
    queue: UploadQueue = Depends(get_upload_queue),
    reconciler: SyncReconciler = Depends(get_reconciler),
):
    """Drop items the reconciler has given up on."""
    purged = await queue.purge_exhausted(reconciler.max_retries, owner_id=owner_id)
    return PurgeResponse(purged=purged)


@router.delete("/{upload_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_pending(upload_id: str, queue: UploadQueue = Depends(get_upload_queue)):
    """Discard one queued item. Unknown ids are not an error."""
    await queue.remove(upload_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{upload_id}/requeue", response_model=RequeueResponse)
async def requeue_pending(upload_id: str, queue: UploadQueue = Depends(get_upload_queue)):
    """Give an item a fresh retry budget under a new id."""
    try:
        new_id = await queue.requeue(upload_id)
    except UploadNotFound as e:
        raise HTTPException(status.HTTP_404_NOT_FOUND, e.message)
    except PayloadError as e:
        raise HTTPException(status.HTTP_409_CONFLICT, e.message)
    return RequeueResponse(id=new_id)
