"""Sync status schemas."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

SyncStatusType = Literal["idle", "syncing", "success", "error", "offline"]


class SyncStatus(BaseModel):
    """Status notification pushed to reconciler subscribers."""
    type: SyncStatusType
    pending_count: int = 0
    synced_count: int | None = None  # only set for "success"


class SyncResult(BaseModel):
    """Outcome of one drain of the pending-upload queue."""
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    total: int = 0


class SyncOverview(BaseModel):
    """Reconciler state for the UI status badge."""
    state: str
    online: bool
    pending_uploads: int = 0
    last_status: SyncStatus | None = None


class VisibilityEvent(BaseModel):
    visible: bool


class ConnectivityEvent(BaseModel):
    online: bool
