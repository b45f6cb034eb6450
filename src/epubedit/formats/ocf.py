# ABOUTME: OCF container handling: unpacking, package-document lookup, and repackaging.
# ABOUTME: Repackaging writes the mimetype entry first and uncompressed, as EPUB readers require.

import logging
import posixpath
import shutil
import zipfile
import zlib
from pathlib import Path

from epubedit.errors import CorruptError, EpubEditError, NotFoundError, PackagingError
from epubedit.formats.xmlutil import find_first, parse_xml

logger = logging.getLogger(__name__)

MIMETYPE = "application/epub+zip"
MIMETYPE_ENTRY = "mimetype"
CONTAINER_PATH = "META-INF/container.xml"


def safe_entry_path(dest: Path, name: str) -> Path:
    """Map an archive entry name to a path under dest, rejecting escapes."""
    normalized = posixpath.normpath(name.replace("\\", "/"))
    if normalized.startswith("/") or normalized == ".." or normalized.startswith("../"):
        raise CorruptError(f"Unsafe entry path in archive: {name!r}")
    return dest / normalized


def unpack(archive: Path, dest: Path) -> None:
    """Extract every entry of an EPUB archive under dest.

    Args:
        archive: Path to the EPUB file.
        dest: Existing directory to extract into.

    Raises:
        NotFoundError: If the archive does not exist.
        CorruptError: If the archive is not a readable zip or has unsafe entry paths.
        EpubEditError: If the extracted files cannot be written.
    """
    if not archive.is_file():
        raise NotFoundError(f"File not found: {archive}")

    try:
        with zipfile.ZipFile(archive) as zf:
            for info in zf.infolist():
                target = safe_entry_path(dest, info.filename)
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as src, open(target, "wb") as out:
                    shutil.copyfileobj(src, out)
    except (zipfile.BadZipFile, zlib.error, EOFError) as exc:
        raise CorruptError(f"Failed to unpack EPUB: {archive}: {exc}") from exc
    except OSError as exc:
        raise EpubEditError(f"Failed to extract {archive} into {dest}: {exc}") from exc

    logger.debug("Unpacked %s into %s", archive, dest)


def rootfile_path(tree: Path) -> str:
    """Read the package document path from META-INF/container.xml.

    Returns the ``full-path`` of the first rootfile element, relative to the
    container root.

    Raises:
        NotFoundError: If container.xml or its rootfile entry is missing.
        CorruptError: If container.xml is not well-formed.
    """
    container = tree / CONTAINER_PATH
    try:
        data = container.read_bytes()
    except OSError as exc:
        raise NotFoundError(f"Missing {CONTAINER_PATH}") from exc

    root = parse_xml(data, CONTAINER_PATH)
    rootfile = find_first(root, "rootfile")
    full_path = (rootfile.get("full-path") or "").strip() if rootfile is not None else ""
    if not full_path:
        raise NotFoundError(f"No package document declared in {CONTAINER_PATH}")
    return full_path


def find_package_document(tree: Path) -> Path:
    """Locate the package document (.opf) inside an unpacked container.

    The rootfile declared in container.xml wins when it exists on disk;
    otherwise the tree is scanned for the first .opf file in sorted order.

    Raises:
        NotFoundError: If no package document can be found.
    """
    try:
        declared = safe_entry_path(tree, rootfile_path(tree))
    except EpubEditError as exc:
        logger.debug("container.xml unusable, scanning for .opf: %s", exc)
    else:
        if declared.is_file():
            return declared

    for path in sorted(tree.rglob("*")):
        if path.suffix.lower() == ".opf" and path.is_file():
            return path

    raise NotFoundError("Could not find a package document (.opf) in the EPUB")


def _write_entry(zf: zipfile.ZipFile, path: Path, arcname: str, compress_type: int) -> None:
    try:
        zf.write(path, arcname, compress_type=compress_type)
    except (OSError, ValueError) as exc:
        raise PackagingError(arcname, str(exc)) from exc


def pack(source_dir: Path, dest: Path) -> Path:
    """Package an unpacked container directory into an EPUB archive.

    The root-level ``mimetype`` file is written first and stored without
    compression so readers can sniff it at a fixed offset. All other regular
    files follow, deflated, in sorted order. A missing mimetype is tolerated
    but logged, since the result will not be a conforming EPUB.

    Args:
        source_dir: Directory mirroring the container contents.
        dest: Archive path to create (overwritten if present).

    Returns:
        The archive path.

    Raises:
        PackagingError: If any entry fails; the partial archive is removed.
    """
    entries = sorted(
        (path.relative_to(source_dir).as_posix(), path)
        for path in source_dir.rglob("*")
        if path.is_file()
    )
    mimetype = source_dir / MIMETYPE_ENTRY

    try:
        with zipfile.ZipFile(dest, "w", strict_timestamps=False) as zf:
            if mimetype.is_file():
                _write_entry(zf, mimetype, MIMETYPE_ENTRY, zipfile.ZIP_STORED)
            else:
                logger.warning("No mimetype entry in %s; packaging anyway", source_dir)

            for arcname, path in entries:
                if arcname == MIMETYPE_ENTRY:
                    continue
                _write_entry(zf, path, arcname, zipfile.ZIP_DEFLATED)
    except PackagingError:
        dest.unlink(missing_ok=True)
        raise
    except OSError as exc:
        dest.unlink(missing_ok=True)
        raise PackagingError(str(dest), str(exc)) from exc

    logger.debug("Packed %d entries from %s into %s", len(entries), source_dir, dest)
    return dest


def check_layout(archive: Path) -> list[str]:
    """Report OCF layout problems in an EPUB archive.

    Returns:
        Human-readable problem descriptions; empty when the layout conforms.
    """
    try:
        zf = zipfile.ZipFile(archive)
    except (OSError, zipfile.BadZipFile) as exc:
        return [f"not a readable zip archive: {exc}"]

    problems: list[str] = []
    with zf:
        infos = zf.infolist()
        if not infos:
            return ["archive is empty"]

        names = {info.filename for info in infos}
        if infos[0].filename != MIMETYPE_ENTRY:
            problems.append(f"first entry is {infos[0].filename!r}, expected 'mimetype'")

        if MIMETYPE_ENTRY not in names:
            problems.append("missing mimetype entry")
        else:
            info = zf.getinfo(MIMETYPE_ENTRY)
            if info.compress_type != zipfile.ZIP_STORED:
                problems.append("mimetype entry is compressed")
            content = zf.read(MIMETYPE_ENTRY)
            if content != MIMETYPE.encode("ascii"):
                problems.append(f"mimetype content is {content!r}, expected {MIMETYPE!r}")

        if CONTAINER_PATH not in names:
            problems.append(f"missing {CONTAINER_PATH}")

        for info in infos:
            if info.compress_type not in (zipfile.ZIP_STORED, zipfile.ZIP_DEFLATED):
                problems.append(f"unsupported compression for {info.filename}")

    return problems
