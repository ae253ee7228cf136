"""Disk space helpers for the payload spool."""

import shutil
from pathlib import Path


def get_disk_usage(path: str | Path) -> dict:
    """Get disk usage for the filesystem holding ``path``."""
    usage = shutil.disk_usage(str(path))
    return {
        "total_bytes": usage.total,
        "used_bytes": usage.used,
        "free_bytes": usage.free,
        "percent": round(usage.used / usage.total * 100, 1) if usage.total > 0 else 0,
    }


def get_directory_usage(path: str | Path, pattern: str = "*") -> tuple[int, int]:
    """Count files matching ``pattern`` under ``path`` and their total size."""
    files = 0
    total = 0
    root = Path(path)
    if not root.is_dir():
        return 0, 0
    for f in root.rglob(pattern):
        if f.is_file():
            files += 1
            total += f.stat().st_size
    return files, total
