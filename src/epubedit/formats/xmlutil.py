# ABOUTME: Shared lxml helpers for namespace-agnostic XML queries.
# ABOUTME: Producers bind different prefixes to the same namespaces, so lookups go by local name.

from lxml import etree

from epubedit.errors import CorruptError


def _make_parser() -> etree.XMLParser:
    # lxml parsers must not be shared between threads
    return etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=True)


def parse_xml(data: bytes, source: str) -> etree._Element:
    """Parse XML bytes into a root element.

    Raises:
        CorruptError: If the document is not well-formed.
    """
    try:
        return etree.fromstring(data, _make_parser())
    except etree.XMLSyntaxError as exc:
        raise CorruptError(f"Failed to parse {source}: {exc}") from exc


def local_name(element: etree._Element) -> str:
    """Local part of an element tag, or "" for comments and processing instructions."""
    if not isinstance(element.tag, str):
        return ""
    return etree.QName(element).localname


def find_all(root: etree._Element, name: str) -> list[etree._Element]:
    """All elements in document order whose local name is ``name``."""
    return root.xpath("//*[local-name()=$name]", name=name)


def find_first(root: etree._Element, name: str) -> etree._Element | None:
    """First element in document order whose local name is ``name``."""
    matches = find_all(root, name)
    return matches[0] if matches else None


def text_of(element: etree._Element) -> str | None:
    """Whitespace-trimmed text content, or None when it is blank."""
    text = "".join(element.itertext()).strip()
    return text or None
