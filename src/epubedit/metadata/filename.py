# ABOUTME: Filename-derived metadata and metadata-derived filenames.
# ABOUTME: Provides the title fallback used when extraction fails, and rename-by-metadata.

import logging
from pathlib import Path
from urllib.parse import unquote

from epubedit.metadata.types import EpubMetadata

logger = logging.getLogger(__name__)

UNTITLED = "Untitled"

_MAX_COLLISION_ATTEMPTS = 10_000


def title_from_filename(path: Path) -> str:
    """Derive a display title from a file name.

    The name is percent-decoded and its extension dropped, so
    ``My%20Book.epub`` becomes ``My Book``.
    """
    return Path(unquote(path.name)).stem.strip()


def metadata_from_filename(path: Path) -> tuple[str, str | None]:
    """Split a ``Title-Author.epub`` file name into (title, author).

    The last hyphen separates the author, so hyphens inside the title survive.
    Without a hyphen the whole stem is the title and author is None.
    """
    stem = title_from_filename(path)
    title, sep, author = stem.rpartition("-")
    if not sep:
        return stem, None
    title = title.strip()
    author = author.strip()
    if not title:
        return stem, None
    return title, author or None


def sanitize_filename(name: str) -> str:
    """Replace path separators and colons that are illegal in file names."""
    for char in ("/", ":", "\\"):
        name = name.replace(char, "_")
    return name.strip()


def _resolve_collision(target: Path, current: Path) -> Path:
    """Find a free name by appending _1, _2, etc. The current file never collides."""
    if not target.exists() or target == current:
        return target
    for counter in range(1, _MAX_COLLISION_ATTEMPTS + 1):
        candidate = target.with_name(f"{target.stem}_{counter}{target.suffix}")
        if not candidate.exists() or candidate == current:
            return candidate
    raise OSError(
        f"Could not find a non-colliding filename after "
        f"{_MAX_COLLISION_ATTEMPTS} attempts: {target}"
    )


def rename_from_metadata(path: Path, metadata: EpubMetadata) -> Path:
    """Rename an EPUB to ``Title-Author.epub`` inside its current directory.

    Args:
        path: The EPUB file to rename.
        metadata: Metadata supplying title and author.

    Returns:
        The new path, or the unchanged path when the name already matches.

    Raises:
        OSError: If the rename fails.
    """
    title = sanitize_filename(metadata.title or "") or UNTITLED
    author = sanitize_filename(metadata.author or "")
    name = f"{title}-{author}.epub" if author else f"{title}.epub"

    target = _resolve_collision(path.with_name(name), path)
    if target == path:
        logger.info("File name unchanged, skipping rename: %s", path.name)
        return path

    path.rename(target)
    logger.info("Renamed %s -> %s", path.name, target.name)
    return target
