# ABOUTME: Sequential batch rewrites of many EPUBs through one ReplaceCoordinator.
# ABOUTME: Failures are collected per file and never stop the remaining files.

import logging
from collections.abc import Callable, Iterable
from contextlib import nullcontext
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path

from epubedit.core.access import AccessTable, PathLocks, Release, canonical_key
from epubedit.core.hashing import hash_if_exists
from epubedit.core.replace import ReplaceCoordinator, ReplaceResult
from epubedit.errors import EpubEditError
from epubedit.metadata.types import EditRequest

logger = logging.getLogger(__name__)


@dataclass
class BatchItem:
    """One file to rewrite and the edits to apply to it."""

    path: Path
    edits: EditRequest
    output: Path | None = None


@dataclass
class BatchFailure:
    """A file that could not be rewritten.

    ``unchanged`` records whether the source file still hashes to the same
    value it had before the attempt.
    """

    path: Path
    error: EpubEditError
    unchanged: bool


@dataclass
class BatchResult:
    """Summary of a batch run."""

    succeeded: list[ReplaceResult] = field(default_factory=list)
    failures: list[BatchFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures


# Called after each item with (item, index, total, error or None)
ProgressFn = Callable[[BatchItem, int, int, EpubEditError | None], None]


def run_batch(
    items: Iterable[BatchItem],
    coordinator: ReplaceCoordinator,
    *,
    locks: PathLocks | None = None,
    access: AccessTable | None = None,
    acquire: Callable[[Path], Release | None] | None = None,
    on_progress: ProgressFn | None = None,
) -> BatchResult:
    """Rewrite each item in order, one at a time.

    Each rewrite holds the per-path lock of its source for its whole
    duration, so a concurrent batch sharing the same PathLocks never
    touches the same file at the same moment.

    When an AccessTable is given, each rewrite also runs inside a lease on
    its source: a path with standing access is used as is, any other path
    is opened with ``acquire`` and released again once its rewrite resolves.

    Args:
        items: Files and edits to process.
        coordinator: Performs each rewrite.
        locks: Shared per-path locks. A private set is used if None.
        access: Standing access grants, keyed by canonical path.
        acquire: Obtains access to one path and returns its release callback.
        on_progress: Called after each item resolves.

    Returns:
        BatchResult with the successful rewrites and every failure.
    """
    items = list(items)
    if locks is None:
        locks = PathLocks()
    result = BatchResult()

    for index, item in enumerate(items, start=1):
        error: EpubEditError | None = None
        before = hash_if_exists(item.path)

        lease = (
            access.access(
                canonical_key(item.path),
                partial(acquire, item.path) if acquire is not None else None,
            )
            if access is not None
            else nullcontext()
        )

        with locks.hold(item.path):
            try:
                with lease:
                    result.succeeded.append(
                        coordinator.run(item.path, item.edits, output=item.output)
                    )
            except EpubEditError as exc:
                error = exc
            except OSError as exc:
                error = EpubEditError(f"{item.path}: {exc}")
                error.__cause__ = exc

        if error is not None:
            unchanged = before is not None and hash_if_exists(item.path) == before
            logger.warning("Failed to rewrite %s: %s", item.path, error)
            result.failures.append(BatchFailure(path=item.path, error=error, unchanged=unchanged))

        if on_progress is not None:
            on_progress(item, index, len(items), error)

    logger.info(
        "Batch finished: %d succeeded, %d failed", len(result.succeeded), len(result.failures)
    )
    return result
