# ABOUTME: Package document (OPF) model and the patcher that applies metadata edits to it.
# ABOUTME: Works on a parsed lxml tree with local-name queries; manifest entries are never deleted.

import logging
import posixpath
import shutil
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote

from lxml import etree

from epubedit.errors import CoverError, InvalidValueError
from epubedit.formats.xmlutil import find_all, find_first, parse_xml, text_of
from epubedit.metadata.types import (
    DEFAULT_IMAGE_MEDIA_TYPE,
    FIELD_ELEMENTS,
    EditRequest,
    media_type_for_extension,
)

logger = logging.getLogger(__name__)

OPF_NS = "http://www.idpf.org/2007/opf"
DC_NS = "http://purl.org/dc/elements/1.1/"
COVER_PROPERTY = "cover-image"


@dataclass(frozen=True)
class ManifestItem:
    """One resource declared in the package manifest."""

    id: str
    href: str
    media_type: str
    properties: tuple[str, ...] = ()

    @property
    def is_cover_image(self) -> bool:
        return COVER_PROPERTY in self.properties

    @classmethod
    def from_element(cls, element: etree._Element) -> "ManifestItem":
        return cls(
            id=element.get("id") or "",
            href=element.get("href") or "",
            media_type=element.get("media-type") or "",
            properties=tuple((element.get("properties") or "").split()),
        )


def _append_child(parent: etree._Element, tag: str, nsmap: dict | None = None) -> etree._Element:
    """Append a new last child, shifting whitespace so indentation stays tidy."""
    siblings = list(parent)
    child = etree.SubElement(parent, tag, nsmap=nsmap)
    if siblings:
        last = siblings[-1]
        child.tail = last.tail
        last.tail = siblings[-2].tail if len(siblings) > 1 else parent.text
    return child


def _assign_text(element: etree._Element, name: str, value: str) -> None:
    try:
        element.text = value
    except ValueError as exc:
        raise InvalidValueError(name, str(exc)) from exc


def _tag_in_namespace_of(element: etree._Element, name: str) -> str:
    namespace = etree.QName(element).namespace
    return f"{{{namespace}}}{name}" if namespace else name


class PackageDocument:
    """A parsed package document.

    Guarantees exactly one metadata element and one manifest element,
    creating them when the source lacks them. Every lookup matches on local
    name only, so ``dc:title``, ``opf:metadata`` and unprefixed forms are
    all found regardless of the producer's prefix choices.
    """

    def __init__(self, root: etree._Element) -> None:
        self.root = root
        self.metadata = self._find_or_create_metadata()
        self.manifest = self._find_or_create_manifest()

    @classmethod
    def parse(cls, data: bytes | str, source: str = "package document") -> "PackageDocument":
        """Parse package document bytes (str input is encoded as UTF-8).

        Raises:
            CorruptError: If the document is not well-formed XML.
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        return cls(parse_xml(data, source))

    def _find_or_create_metadata(self) -> etree._Element:
        metadata = find_first(self.root, "metadata")
        if metadata is not None:
            return metadata
        nsmap = None if DC_NS in self.root.nsmap.values() else {"dc": DC_NS}
        metadata = self.root.makeelement(_tag_in_namespace_of(self.root, "metadata"), nsmap=nsmap)
        manifest = find_first(self.root, "manifest")
        index = self.root.index(manifest) if manifest is not None else 0
        self.root.insert(index, metadata)
        logger.debug("Package document had no metadata element; created one")
        return metadata

    def _find_or_create_manifest(self) -> etree._Element:
        manifest = find_first(self.root, "manifest")
        if manifest is not None:
            return manifest
        manifest = self.root.makeelement(_tag_in_namespace_of(self.root, "manifest"))
        self.metadata.addnext(manifest)
        logger.debug("Package document had no manifest element; created one")
        return manifest

    # --- queries ---

    def first(self, name: str) -> etree._Element | None:
        """First element anywhere in the document with the given local name."""
        return find_first(self.root, name)

    def first_text(self, name: str) -> str | None:
        """Trimmed text of the first element with the given local name, None if blank."""
        element = self.first(name)
        return text_of(element) if element is not None else None

    def manifest_items(self) -> list[ManifestItem]:
        return [ManifestItem.from_element(el) for el in find_all(self.manifest, "item")]

    def item_element(self, item_id: str) -> etree._Element | None:
        matches = self.root.xpath("//*[local-name()='item'][@id=$id]", id=item_id)
        return matches[0] if matches else None

    def cover_element(self) -> etree._Element | None:
        """Find the manifest item holding the cover image.

        Looks first for an item whose properties include ``cover-image``,
        then follows ``<meta name="cover" content="ID">`` to an item id.
        """
        for element in find_all(self.root, "item"):
            if COVER_PROPERTY in (element.get("properties") or "").split():
                return element

        metas = self.root.xpath("//*[local-name()='meta'][@name='cover']")
        if metas:
            cover_id = (metas[0].get("content") or "").strip()
            if cover_id:
                return self.item_element(cover_id)
        return None

    def cover_item(self) -> ManifestItem | None:
        element = self.cover_element()
        return ManifestItem.from_element(element) if element is not None else None

    def unique_id(self, prefix: str) -> str:
        """Generate an id not used by any element in the document."""
        while True:
            candidate = f"{prefix}{uuid.uuid4().hex[:6]}"
            if not self.root.xpath("//*[@id=$id]", id=candidate):
                return candidate

    # --- mutations ---

    def set_text(self, name: str, value: str) -> bool:
        """Set the text of the first element with this local name.

        Attributes of an existing element are left alone and its child
        elements are dropped so its text content is exactly ``value``.
        When no such element exists a Dublin Core element is appended as the
        last child of metadata.

        Returns:
            True if an existing element was rewritten, False if one was added.

        Raises:
            InvalidValueError: If value holds characters XML cannot represent.
        """
        element = self.first(name)
        if element is not None:
            for child in list(element):
                element.remove(child)
            _assign_text(element, name, value)
            return True

        nsmap = None if DC_NS in self.metadata.nsmap.values() else {"dc": DC_NS}
        element = _append_child(self.metadata, f"{{{DC_NS}}}{name}", nsmap=nsmap)
        _assign_text(element, name, value)
        return False

    def append_item(
        self, item_id: str, href: str, media_type: str, properties: str | None = None
    ) -> etree._Element:
        """Append a new item as the last child of the manifest."""
        element = _append_child(self.manifest, _tag_in_namespace_of(self.manifest, "item"))
        element.set("id", item_id)
        element.set("href", href)
        element.set("media-type", media_type)
        if properties:
            element.set("properties", properties)
        return element

    def to_bytes(self) -> bytes:
        """Serialize with XML declaration, doctype and comments preserved."""
        tree = self.root.getroottree()
        encoding = tree.docinfo.encoding or "utf-8"
        return etree.tostring(tree, xml_declaration=True, encoding=encoding)


@dataclass(frozen=True)
class CoverSwap:
    """What a cover substitution changed in the manifest."""

    item_id: str
    new_href: str
    media_type: str
    legacy_id: str
    legacy_href: str
    legacy_media_type: str


@dataclass(frozen=True)
class PatchResult:
    """Patched package document bytes plus a summary of what was applied."""

    data: bytes
    fields: tuple[str, ...] = ()
    cover: CoverSwap | None = None
    cover_skipped: bool = False


def _random_token() -> str:
    return uuid.uuid4().hex[:8]


class OpfPatcher:
    """Applies an EditRequest to package document text.

    Cover substitutions also write into the unpacked container: the new
    image is copied next to the existing cover, relative to package_dir
    (the directory holding the package document).
    """

    def __init__(
        self, package_dir: Path, *, name_factory: Callable[[], str] | None = None
    ) -> None:
        self.package_dir = package_dir
        self._name_factory = name_factory or _random_token

    def apply(self, opf: bytes | str, edits: EditRequest) -> PatchResult:
        """Patch the package document and perform any cover file copy.

        Raises:
            CorruptError: If the package document is not well-formed.
            CoverError: If the replacement cover cannot be copied.
            InvalidValueError: If a field value cannot be stored in XML.
        """
        doc = PackageDocument.parse(opf)

        applied = []
        for name, value in edits.field_values().items():
            existed = doc.set_text(FIELD_ELEMENTS[name], value)
            logger.debug("%s %s", "Updated" if existed else "Inserted", name)
            applied.append(name)

        cover = None
        if edits.cover_path is not None:
            cover = self._swap_cover(doc, edits.cover_path)

        return PatchResult(
            data=doc.to_bytes(),
            fields=tuple(applied),
            cover=cover,
            cover_skipped=edits.cover_path is not None and cover is None,
        )

    def _new_cover_href(self, directory: str, extension: str) -> str:
        while True:
            name = f"cover_{self._name_factory()}.{extension}"
            href = posixpath.join(directory, name) if directory else name
            if not (self.package_dir / unquote(href)).exists():
                return href

    def _swap_cover(self, doc: PackageDocument, cover_path: Path) -> CoverSwap | None:
        element = doc.cover_element()
        old_href = element.get("href") if element is not None else None
        if element is None or not old_href:
            logger.warning("No cover reference found in package document; cover left unchanged")
            return None

        old_media_type = element.get("media-type") or DEFAULT_IMAGE_MEDIA_TYPE
        extension = cover_path.suffix.lower().lstrip(".") or "jpg"
        new_href = self._new_cover_href(posixpath.dirname(old_href), extension)

        target = self.package_dir / unquote(new_href)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(cover_path, target)
        except OSError as exc:
            raise CoverError(f"Failed to copy cover {cover_path}: {exc}") from exc

        media_type = media_type_for_extension(extension)
        element.set("href", new_href)
        element.set("media-type", media_type)

        legacy_id = doc.unique_id("legacy_cover_")
        doc.append_item(legacy_id, old_href, old_media_type)

        item_id = element.get("id") or ""
        logger.info(
            "Cover item %s now points at %s; kept %s as %s",
            item_id,
            new_href,
            old_href,
            legacy_id,
        )
        return CoverSwap(
            item_id=item_id,
            new_href=new_href,
            media_type=media_type,
            legacy_id=legacy_id,
            legacy_href=old_href,
            legacy_media_type=old_media_type,
        )
