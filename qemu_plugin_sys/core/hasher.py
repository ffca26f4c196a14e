"""SHA-256 helpers for recording what a run wrote."""

from __future__ import annotations

import hashlib
from pathlib import Path


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def file_digest(path: Path) -> str:
    """Return ``sha256:<hex>`` for a file's current contents."""
    return f"sha256:{sha256_hex(Path(path).read_bytes())}"
