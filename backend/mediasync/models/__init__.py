"""SQLAlchemy ORM models for mediasync."""

from mediasync.models.base import Base
from mediasync.models.pending_upload import PendingUploadRecord

__all__ = [
    "Base",
    "PendingUploadRecord",
]
