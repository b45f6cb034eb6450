# ABOUTME: EPUB metadata extraction from an unpacked OCF container.
# ABOUTME: Best-effort wrapper returns None for unreadable files so callers can fall back.

import logging
from pathlib import Path
from urllib.parse import unquote

from epubedit.core.workspace import scratch_directory
from epubedit.errors import EpubEditError, NotFoundError
from epubedit.formats.ocf import rootfile_path, safe_entry_path, unpack
from epubedit.formats.opf import PackageDocument
from epubedit.metadata.types import FIELD_ELEMENTS, FIELD_NAMES, CoverImage, EpubMetadata

logger = logging.getLogger(__name__)

# Checked in this order beside the package document, case-insensitively
CONVENTIONAL_COVER_NAMES = ("cover.jpg", "cover.jpeg", "cover.png")


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


def _read_cover(path: Path) -> CoverImage:
    return CoverImage(data=path.read_bytes(), extension=path.suffix.lstrip(".").lower())


def _load_image(href: str, base_dir: Path, tree: Path) -> CoverImage | None:
    """Read a manifest href relative to the package document, if it exists."""
    image_path = base_dir / unquote(href)
    if not _is_within(image_path, tree) or not image_path.is_file():
        logger.debug("Cover href %s does not resolve to a file", href)
        return None
    return _read_cover(image_path)


def _find_conventional_cover(base_dir: Path) -> CoverImage | None:
    """Look for cover.jpg/.jpeg/.png beside the package document."""
    by_name = {p.name.lower(): p for p in sorted(base_dir.iterdir()) if p.is_file()}
    for name in CONVENTIONAL_COVER_NAMES:
        if name in by_name:
            return _read_cover(by_name[name])
    return None


def _extract_cover(doc: PackageDocument, base_dir: Path, tree: Path) -> CoverImage | None:
    """Resolve the cover image; the first rule whose file can be read wins.

    1. A manifest item with the ``cover-image`` property.
    2. ``<meta name="cover">`` naming a manifest item id.
    3. A conventionally named file beside the package document.
    """
    for element in doc.root.xpath("//*[local-name()='item'][@href]"):
        if "cover-image" in (element.get("properties") or "").split():
            cover = _load_image(element.get("href"), base_dir, tree)
            if cover is not None:
                return cover
            break

    metas = doc.root.xpath("//*[local-name()='meta'][@name='cover']")
    if metas:
        cover_id = (metas[0].get("content") or "").strip()
        item = doc.item_element(cover_id) if cover_id else None
        if item is not None and item.get("href"):
            cover = _load_image(item.get("href"), base_dir, tree)
            if cover is not None:
                return cover

    return _find_conventional_cover(base_dir)


def _read_unpacked(tree: Path) -> EpubMetadata:
    opf_relpath = rootfile_path(tree)
    opf_path = safe_entry_path(tree, opf_relpath)
    try:
        data = opf_path.read_bytes()
    except OSError as exc:
        raise NotFoundError(f"Package document not found: {opf_relpath}") from exc

    doc = PackageDocument.parse(data, opf_relpath)
    values = {name: doc.first_text(FIELD_ELEMENTS[name]) for name in FIELD_NAMES}
    return EpubMetadata(**values, cover=_extract_cover(doc, opf_path.parent, tree))


def read_epub_metadata(path: Path, *, work_dir: Path | None = None) -> EpubMetadata:
    """Extract metadata from an EPUB file.

    Args:
        path: Path to the EPUB file.
        work_dir: Where to create the temporary unpack directory (system default if None).

    Returns:
        EpubMetadata snapshot; fields absent from the package document are None.

    Raises:
        NotFoundError: If the file, container.xml or the package document is missing.
        CorruptError: If the archive or its XML cannot be parsed.
        EpubEditError: If a working directory cannot be used.
    """
    try:
        with scratch_directory(prefix="epubedit-read-", parent=work_dir) as tree:
            unpack(path, tree)
            return _read_unpacked(tree)
    except OSError as exc:
        raise EpubEditError(f"Failed to read EPUB: {path}: {exc}") from exc


def extract(path: Path, *, work_dir: Path | None = None) -> EpubMetadata | None:
    """Best-effort metadata extraction.

    Any failure to unpack or to locate container.xml or the package document
    yields None instead of an error, so a caller can fall back to a title
    derived from the filename.
    """
    try:
        return read_epub_metadata(path, work_dir=work_dir)
    except EpubEditError as exc:
        logger.warning("Could not extract metadata from %s: %s", path, exc)
        return None
