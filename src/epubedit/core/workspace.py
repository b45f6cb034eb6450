# ABOUTME: Scoped temporary directories and files with retrying, logged cleanup.
# ABOUTME: Every exit path attempts removal; failures are logged and retried later, never raised.

import logging
import shutil
import tempfile
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CleanupPolicy:
    """How hard to try when removing a temporary directory.

    Attempt n (1-based) that fails is followed by a sleep of ``backoff * n``
    seconds. After the last attempt, a single deferred retry runs on a daemon
    timer ``deferred_delay`` seconds later, unless it is None.
    """

    attempts: int = 3
    backoff: float = 0.1
    deferred_delay: float | None = 1.0


DEFAULT_CLEANUP_POLICY = CleanupPolicy()


def _deferred_remove(path: Path) -> None:
    shutil.rmtree(path, ignore_errors=True)
    if path.exists():
        logger.warning("Deferred cleanup could not remove %s", path)
    else:
        logger.info("Deferred cleanup removed %s", path)


def remove_tree(
    path: Path,
    policy: CleanupPolicy = DEFAULT_CLEANUP_POLICY,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Remove a directory tree with bounded retries.

    Returns:
        True when the directory is gone, False when it was left behind.
    """
    for attempt in range(1, policy.attempts + 1):
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            return True
        except OSError as exc:
            logger.debug(
                "Cleanup of %s failed (attempt %d/%d): %s", path, attempt, policy.attempts, exc
            )
            if attempt < policy.attempts:
                sleep(policy.backoff * attempt)
        else:
            logger.debug("Removed %s (attempt %d/%d)", path, attempt, policy.attempts)
            return True

    logger.warning("Could not remove temporary directory %s", path)
    if policy.deferred_delay is not None:
        timer = threading.Timer(policy.deferred_delay, _deferred_remove, args=(path,))
        timer.daemon = True
        timer.start()
    return False


@contextmanager
def scratch_directory(
    prefix: str = "epubedit-",
    *,
    parent: Path | None = None,
    policy: CleanupPolicy = DEFAULT_CLEANUP_POLICY,
) -> Iterator[Path]:
    """Create a private, uniquely named directory and remove it on exit.

    Raises:
        OSError: If the directory cannot be created.
    """
    path = Path(tempfile.mkdtemp(prefix=prefix, dir=parent))
    try:
        yield path
    finally:
        remove_tree(path, policy)


@contextmanager
def staging_file(
    suffix: str = ".epub",
    *,
    prefix: str = "epubedit-",
    parent: Path | None = None,
) -> Iterator[Path]:
    """Reserve a unique file path; whatever is left there is deleted on exit.

    Raises:
        OSError: If the file cannot be created.
    """
    handle = tempfile.NamedTemporaryFile(prefix=prefix, suffix=suffix, dir=parent, delete=False)
    handle.close()
    path = Path(handle.name)
    try:
        yield path
    finally:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove staging file %s: %s", path, exc)
