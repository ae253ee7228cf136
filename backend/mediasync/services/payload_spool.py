"""Async filesystem spool for queued media payloads.

Each pending upload keeps its bytes in ``{base_path}/{upload_id}.bin``.
Writes go to a hidden temp file first and are renamed into place, so a
crash mid-write never leaves a truncated payload under a real name.
"""

from __future__ import annotations

import logging
from pathlib import Path

import aiofiles
import aiofiles.os

from mediasync.utils.storage import get_directory_usage

logger = logging.getLogger(__name__)


class PayloadSpool:
    """Stores raw payload bytes next to the queue database."""

    SUFFIX = ".bin"

    def __init__(self, base_path: str | Path) -> None:
        self.base_path = Path(base_path)

    def ensure(self) -> None:
        """Create the spool directory. Raises OSError if the platform refuses."""
        self.base_path.mkdir(parents=True, exist_ok=True)

    def path_for(self, upload_id: str) -> Path:
        return self.base_path / f"{upload_id}{self.SUFFIX}"

    async def store(self, upload_id: str, data: bytes) -> Path:
        """Write payload bytes atomically and return the final path."""
        final_path = self.path_for(upload_id)
        if final_path.exists():
            raise FileExistsError(f"Payload already spooled: {final_path}")
        tmp_path = self.base_path / f".{upload_id}.part"

        async with aiofiles.open(tmp_path, "wb") as f:
            await f.write(data)
            await f.flush()

        await aiofiles.os.replace(tmp_path, final_path)
        return final_path

    async def retrieve(self, path: str | Path) -> bytes:
        """Read payload bytes.

        Raises:
            FileNotFoundError: If the spool file does not exist.
        """
        path = Path(path)
        async with aiofiles.open(path, "rb") as f:
            return await f.read()

    async def delete(self, path: str | Path) -> bool:
        """Delete a spool file. Returns False if it was already gone."""
        try:
            await aiofiles.os.remove(Path(path))
            return True
        except FileNotFoundError:
            return False

    def get_storage_stats(self) -> dict:
        """Number of spooled payloads and their total size."""
        files, total = get_directory_usage(self.base_path, f"*{self.SUFFIX}")
        return {
            "total_files": files,
            "total_size_mb": round(total / (1024 * 1024), 2),
        }
