# ABOUTME: SHA-256 file hashing for before/after comparisons of rewritten files.
# ABOUTME: Reads in chunks so large EPUBs are not loaded into memory at once.

import hashlib
from pathlib import Path

_CHUNK_SIZE = 65536  # 64 KB


def compute_file_hash(path: Path) -> str:
    """Compute the lowercase hex SHA-256 digest of a file.

    Raises:
        OSError: If the file cannot be read.
    """
    hasher = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def hash_if_exists(path: Path) -> str | None:
    """Hash a file, or return None when it is missing or unreadable."""
    try:
        return compute_file_hash(path)
    except OSError:
        return None
