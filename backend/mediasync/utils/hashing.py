"""SHA-256 helpers for spooled payloads."""

import hashlib


def hash_bytes(data: bytes) -> str:
    """Compute SHA-256 hex digest of an in-memory payload."""
    return hashlib.sha256(data).hexdigest()
