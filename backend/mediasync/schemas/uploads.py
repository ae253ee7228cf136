"""Pending upload schemas — what the capture UI sees (never the payload bytes)."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class PendingUploadInfo(BaseModel):
    """One queued media item."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: int
    destination: str
    filename: str
    content_type: str
    size_bytes: int
    created_at: datetime
    attempt_count: int
    last_error: str | None = None


class PendingCount(BaseModel):
    pending: int
    owner_id: int | None = None


class QueueStats(BaseModel):
    """Queue and spool usage statistics."""
    pending: int
    exhausted: int  # at or past the retry ceiling, skipped by the reconciler
    spool_files: int
    spool_size_mb: float
    disk_free_mb: float
    disk_usage_percent: float


class CaptureOutcome(BaseModel):
    """Result of handing a captured file to the agent."""
    uploaded: bool
    queued_id: str | None = None
    error: str | None = None


class RequeueResponse(BaseModel):
    id: str


class PurgeResponse(BaseModel):
    purged: int
