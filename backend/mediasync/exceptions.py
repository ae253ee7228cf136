"""
mediasync exception hierarchy.

Queue, spool and upload failures each get their own type so callers can
tell a fatal storage problem apart from a per-item upload failure.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional


class MediaSyncError(Exception):
    """Base exception for all mediasync errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.recoverable = recoverable
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        return self.message


# ============================================================================
# STORAGE ERRORS
# ============================================================================

class StorageUnavailable(MediaSyncError):
    """The local persistent store cannot be opened or created."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message, details={"path": path}, recoverable=False)
        self.path = path


class QueueStorageError(MediaSyncError):
    """A store-level failure (disk full, locked or corrupt database)."""

    def __init__(self, message: str, operation: str):
        super().__init__(message, details={"operation": operation}, recoverable=True)
        self.operation = operation


class UploadNotFound(MediaSyncError):
    """No pending upload with the given id."""

    def __init__(self, upload_id: str):
        super().__init__(f"Pending upload not found: {upload_id}", details={"id": upload_id})
        self.upload_id = upload_id


# ============================================================================
# PAYLOAD ERRORS
# ============================================================================

class PayloadError(MediaSyncError):
    """The spooled bytes of a pending upload cannot be used."""

    def __init__(self, message: str, upload_id: str):
        super().__init__(message, details={"id": upload_id}, recoverable=False)
        self.upload_id = upload_id


class PayloadMissing(PayloadError):
    """Spool file is gone."""


class PayloadCorrupted(PayloadError):
    """Spool file no longer matches the recorded size or digest."""


# ============================================================================
# UPLOAD ERRORS
# ============================================================================

class UploadFailed(MediaSyncError):
    """A single upload attempt failed (non-2xx, timeout or network error)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        timed_out: bool = False,
    ):
        super().__init__(
            message,
            details={"status_code": status_code, "timed_out": timed_out},
            recoverable=True,
        )
        self.status_code = status_code
        self.timed_out = timed_out

    @property
    def retryable(self) -> bool:
        """Timeouts, transport errors and 5xx responses are worth retrying."""
        if self.status_code is None:
            return True
        return 500 <= self.status_code < 600
