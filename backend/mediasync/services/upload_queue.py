"""Durable local queue of pending media uploads — SQLite metadata + payload spool."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from mediasync.config import settings
from mediasync.database import build_engine, build_session_factory, init_db
from mediasync.exceptions import (
    PayloadCorrupted,
    PayloadMissing,
    QueueStorageError,
    StorageUnavailable,
    UploadNotFound,
)
from mediasync.models.pending_upload import PendingUploadRecord
from mediasync.schemas.uploads import QueueStats
from mediasync.services.payload_spool import PayloadSpool
from mediasync.utils.hashing import hash_bytes
from mediasync.utils.storage import get_disk_usage

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 1000
DEFAULT_FILENAME = "upload.bin"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class PendingUpload:
    """Snapshot of one queued media item. Payload bytes stay in the spool."""

    id: str
    owner_id: int
    destination: str
    filename: str
    content_type: str
    payload_path: str
    size_bytes: int
    sha256: str
    created_at: datetime
    attempt_count: int = 0
    last_error: str | None = None

    @classmethod
    def from_record(cls, record: PendingUploadRecord) -> PendingUpload:
        return cls(
            id=record.id,
            owner_id=record.owner_id,
            destination=record.destination,
            filename=record.filename,
            content_type=record.content_type,
            payload_path=record.payload_path,
            size_bytes=record.size_bytes,
            sha256=record.sha256,
            created_at=record.created_at,
            attempt_count=record.attempt_count,
            last_error=record.last_error,
        )


def new_upload_id(owner_id: int) -> str:
    """Owner id + creation millis + random suffix."""
    millis = int(time.time() * 1000)
    return f"{owner_id}-{millis}-{uuid.uuid4().hex[:9]}"


def _utcnow() -> datetime:
    # SQLite DateTime columns are naive; store UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UploadQueue:
    """Persists pending uploads across restarts, independent of network state."""

    def __init__(
        self,
        database_path: str | Path | None = None,
        spool_dir: str | Path | None = None,
    ):
        self._database_path = Path(database_path or settings.database_path)
        self._spool = PayloadSpool(spool_dir or settings.spool_dir)
        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None
        self._init_lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._sessions is not None

    @property
    def spool(self) -> PayloadSpool:
        return self._spool

    async def initialize(self) -> None:
        """Open (or create) the local store. Safe to call repeatedly and concurrently."""
        if self._sessions is not None:
            return

        async with self._init_lock:
            if self._sessions is not None:
                return

            try:
                self._database_path.parent.mkdir(parents=True, exist_ok=True)
                self._spool.ensure()
            except OSError as e:
                raise StorageUnavailable(
                    f"Cannot create local storage: {e}", path=str(self._database_path)
                ) from e

            engine = build_engine(self._database_path)
            try:
                await init_db(engine)
            except (SQLAlchemyError, OSError) as e:
                await engine.dispose()
                raise StorageUnavailable(
                    f"Cannot open local database: {e}", path=str(self._database_path)
                ) from e

            self._engine = engine
            self._sessions = build_session_factory(engine)
            logger.info("Upload queue opened at %s (spool: %s)", self._database_path, self._spool.base_path)

    async def close(self) -> None:
        """Dispose the engine. A later initialize() reopens the store."""
        async with self._init_lock:
            if self._engine is not None:
                await self._engine.dispose()
            self._engine = None
            self._sessions = None

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        await self.initialize()
        if self._sessions is None:
            raise StorageUnavailable("Upload queue is closed", path=str(self._database_path))
        try:
            async with self._sessions() as session:
                yield session
        except SQLAlchemyError as e:
            raise QueueStorageError(f"Queue {operation} failed: {e}", operation=operation) from e

    # ------------------------------------------------------------------
    # Capture-side writes
    # ------------------------------------------------------------------

    async def enqueue(
        self,
        owner_id: int,
        payload: bytes,
        destination: str,
        filename: str | None = None,
        content_type: str | None = None,
    ) -> str:
        """Durably store a payload for later upload and return its id."""
        await self.initialize()
        upload_id = new_upload_id(owner_id)

        try:
            path = await self._spool.store(upload_id, payload)
        except OSError as e:
            raise QueueStorageError(f"Cannot spool payload: {e}", operation="enqueue") from e

        record = PendingUploadRecord(
            id=upload_id,
            owner_id=owner_id,
            destination=destination,
            filename=filename or DEFAULT_FILENAME,
            content_type=content_type or DEFAULT_CONTENT_TYPE,
            payload_path=str(path),
            size_bytes=len(payload),
            sha256=hash_bytes(payload),
            created_at=_utcnow(),
            attempt_count=0,
        )
        try:
            async with self._session("enqueue") as db:
                db.add(record)
                await db.commit()
        except QueueStorageError:
            await self._discard_payload(path)
            raise

        logger.info("Upload queued: %s for owner %d (%d bytes)", upload_id, owner_id, len(payload))
        return upload_id

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_all(self) -> list[PendingUpload]:
        """Every queued item, oldest first."""
        async with self._session("list_all") as db:
            result = await db.execute(
                select(PendingUploadRecord).order_by(
                    PendingUploadRecord.created_at, PendingUploadRecord.id
                )
            )
            return [PendingUpload.from_record(r) for r in result.scalars().all()]

    async def list_by_owner(self, owner_id: int) -> list[PendingUpload]:
        async with self._session("list_by_owner") as db:
            result = await db.execute(
                select(PendingUploadRecord)
                .where(PendingUploadRecord.owner_id == owner_id)
                .order_by(PendingUploadRecord.created_at, PendingUploadRecord.id)
            )
            return [PendingUpload.from_record(r) for r in result.scalars().all()]

    async def get(self, upload_id: str) -> PendingUpload | None:
        async with self._session("get") as db:
            record = await db.get(PendingUploadRecord, upload_id)
            return PendingUpload.from_record(record) if record else None

    async def count(self) -> int:
        async with self._session("count") as db:
            result = await db.execute(select(func.count()).select_from(PendingUploadRecord))
            return result.scalar_one()

    async def count_by_owner(self, owner_id: int) -> int:
        async with self._session("count_by_owner") as db:
            result = await db.execute(
                select(func.count())
                .select_from(PendingUploadRecord)
                .where(PendingUploadRecord.owner_id == owner_id)
            )
            return result.scalar_one()

    async def count_exhausted(self, max_retries: int) -> int:
        async with self._session("count_exhausted") as db:
            result = await db.execute(
                select(func.count())
                .select_from(PendingUploadRecord)
                .where(PendingUploadRecord.attempt_count >= max_retries)
            )
            return result.scalar_one()

    async def read_payload(self, item: PendingUpload) -> bytes:
        """Load spooled bytes, verifying size and SHA-256."""
        try:
            data = await self._spool.retrieve(item.payload_path)
        except FileNotFoundError as e:
            raise PayloadMissing(f"Payload file missing for {item.id}", upload_id=item.id) from e
        except OSError as e:
            raise QueueStorageError(f"Cannot read payload {item.id}: {e}", operation="read_payload") from e

        if len(data) != item.size_bytes or hash_bytes(data) != item.sha256:
            raise PayloadCorrupted(
                f"Payload for {item.id} does not match its recorded digest", upload_id=item.id
            )
        return data

    # ------------------------------------------------------------------
    # Reconciler-side mutations
    # ------------------------------------------------------------------

    async def remove(self, upload_id: str) -> None:
        """Delete a pending upload and its payload. Unknown ids are ignored."""
        async with self._session("remove") as db:
            record = await db.get(PendingUploadRecord, upload_id)
            if record is None:
                return
            path = record.payload_path
            await db.delete(record)
            await db.commit()

        await self._discard_payload(path)
        logger.info("Upload removed from queue: %s", upload_id)

    async def record_failure(self, upload_id: str, error_message: str) -> None:
        """Increment attempt_count and store the latest error."""
        async with self._session("record_failure") as db:
            result = await db.execute(
                update(PendingUploadRecord)
                .where(PendingUploadRecord.id == upload_id)
                .values(
                    attempt_count=PendingUploadRecord.attempt_count + 1,
                    last_error=error_message[:MAX_ERROR_LENGTH],
                )
            )
            await db.commit()

        if result.rowcount == 0:
            logger.warning("Cannot record failure for %s — no longer queued", upload_id)

    # ------------------------------------------------------------------
    # Administrative cleanup
    # ------------------------------------------------------------------

    async def requeue(self, upload_id: str) -> str:
        """Re-enqueue an item as a fresh record (attempt_count 0) and drop the old one."""
        item = await self.get(upload_id)
        if item is None:
            raise UploadNotFound(upload_id)

        payload = await self.read_payload(item)
        new_id = await self.enqueue(
            item.owner_id,
            payload,
            item.destination,
            filename=item.filename,
            content_type=item.content_type,
        )
        await self.remove(upload_id)
        logger.info("Upload %s re-queued as %s", upload_id, new_id)
        return new_id

    async def purge_exhausted(self, max_retries: int, owner_id: int | None = None) -> int:
        """Delete items at or past the retry ceiling. Returns how many were removed."""
        async with self._session("purge_exhausted") as db:
            stmt = select(PendingUploadRecord).where(
                PendingUploadRecord.attempt_count >= max_retries
            )
            if owner_id is not None:
                stmt = stmt.where(PendingUploadRecord.owner_id == owner_id)
            records = (await db.execute(stmt)).scalars().all()
            paths = [r.payload_path for r in records]
            for record in records:
                await db.delete(record)
            await db.commit()

        for path in paths:
            await self._discard_payload(path)
        if paths:
            logger.info("Purged %d exhausted uploads", len(paths))
        return len(paths)

    async def stats(self, max_retries: int) -> QueueStats:
        pending = await self.count()
        exhausted = await self.count_exhausted(max_retries)
        spool = self._spool.get_storage_stats()
        disk = get_disk_usage(self._spool.base_path)
        return QueueStats(
            pending=pending,
            exhausted=exhausted,
            spool_files=spool["total_files"],
            spool_size_mb=spool["total_size_mb"],
            disk_free_mb=round(disk["free_bytes"] / (1024 * 1024), 1),
            disk_usage_percent=disk["percent"],
        )

    async def _discard_payload(self, path: str | Path) -> None:
        try:
            await self._spool.delete(path)
        except OSError as e:
            logger.warning("Could not delete spool file %s: %s", path, e)
