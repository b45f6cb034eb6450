# ABOUTME: Thread-safe per-path locks and an explicit access-lease table.
# ABOUTME: Serializes mutations of the same file and tracks which resources hold standing access.

import logging
import os
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

Release = Callable[[], None]


def canonical_key(path: Path) -> str:
    """Canonical string key for a path (symlinks and relative parts resolved)."""
    return os.path.realpath(path)


@dataclass
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class PathLocks:
    """One lock per canonical file path.

    Two rewrites of the same file must never overlap; rewrites of different
    files may run concurrently. An entry lives only while some thread holds
    or waits for its path.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, _LockEntry] = {}

    def _check_out(self, key: str) -> _LockEntry:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _LockEntry()
            entry.users += 1
            return entry

    def _check_in(self, key: str, entry: _LockEntry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, path: Path) -> Iterator[None]:
        """Block until no other holder has this path, then hold it for the block."""
        key = canonical_key(path)
        entry = self._check_out(key)
        try:
            with entry.lock:
                yield
        finally:
            self._check_in(key, entry)

    def locked(self, path: Path) -> bool:
        """Whether some thread currently holds path."""
        with self._guard:
            entry = self._locks.get(canonical_key(path))
            return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class AccessTable:
    """Record of resources that currently hold elevated access.

    Each entry maps a resource key to the callback that gives the access
    back. All mutations and lookups go through one lock, so entries can be
    added and removed from one thread while others check membership.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, Release] = {}

    def add(self, key: str, release: Release) -> None:
        """Register standing access for key, releasing any previous grant."""
        with self._lock:
            previous = self._entries.get(key)
            self._entries[key] = release
        if previous is not None and previous is not release:
            previous()

    def remove(self, key: str) -> bool:
        """Release and forget the access held for key.

        Returns:
            True if key held access.
        """
        with self._lock:
            release = self._entries.pop(key, None)
        if release is None:
            return False
        release()
        return True

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def release_all(self) -> None:
        """Release every standing grant."""
        with self._lock:
            entries = list(self._entries.items())
            self._entries.clear()
        for key, release in entries:
            try:
                release()
            except Exception:
                logger.exception("Releasing access for %s failed", key)

    @contextmanager
    def access(
        self, key: str, acquire: Callable[[], Release | None] | None = None
    ) -> Iterator[None]:
        """Run a block with access to key.

        When key already holds standing access nothing is acquired. Otherwise
        ``acquire`` is called and the release callback it returns (if any)
        runs when the block exits.
        """
        if key in self or acquire is None:
            yield
            return

        release = acquire()
        try:
            yield
        finally:
            if release is not None:
                release()
