# ABOUTME: Core metadata data structures for EPUB metadata snapshots and edit requests.
# ABOUTME: EpubMetadata is what extraction returns; EditRequest is what a rewrite applies.

import re
from dataclasses import dataclass, field, fields
from pathlib import Path

from epubedit.errors import InvalidValueError, NoChangesError

FIELD_NAMES: tuple[str, ...] = (
    "title",
    "author",
    "publisher",
    "language",
    "identifier",
    "description",
)

# Dublin Core local name for each editable field
FIELD_ELEMENTS: dict[str, str] = {
    "title": "title",
    "author": "creator",
    "publisher": "publisher",
    "language": "language",
    "identifier": "identifier",
    "description": "description",
}

IMAGE_MEDIA_TYPES: dict[str, str] = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
}

DEFAULT_IMAGE_MEDIA_TYPE = "image/jpeg"

# Characters XML 1.0 does not allow in text content
_XML_ILLEGAL = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


def media_type_for_extension(extension: str) -> str:
    """Map an image file extension (with or without dot) to its media type.

    Unknown extensions fall back to image/jpeg.
    """
    return IMAGE_MEDIA_TYPES.get(extension.lower().lstrip("."), DEFAULT_IMAGE_MEDIA_TYPE)


@dataclass(frozen=True)
class CoverImage:
    """Cover image bytes plus the extension of the file they were read from."""

    data: bytes
    extension: str

    @property
    def media_type(self) -> str:
        return media_type_for_extension(self.extension)


@dataclass(frozen=True)
class EpubMetadata:
    """Read-only snapshot of the metadata stored in an EPUB package document.

    Fields that are missing or blank in the package document are None,
    never empty strings.
    """

    title: str | None = None
    author: str | None = None
    publisher: str | None = None
    language: str | None = None
    identifier: str | None = None
    description: str | None = None
    cover: CoverImage | None = None

    @property
    def has_cover(self) -> bool:
        """Whether cover image data is present."""
        return self.cover is not None and len(self.cover.data) > 0

    def get(self, name: str) -> str | None:
        """Return the value of a scalar field by name."""
        if name not in FIELD_NAMES:
            raise KeyError(name)
        return getattr(self, name)

    def as_dict(self) -> dict[str, str | None]:
        """Scalar fields as an ordered dict (cover excluded)."""
        return {name: getattr(self, name) for name in FIELD_NAMES}


def _blank_to_none(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value


@dataclass(frozen=True)
class EditRequest:
    """Replacement values to write into an EPUB.

    None means "leave unchanged". Blank strings are treated the same as None,
    so an emptied form field never erases existing metadata.
    """

    title: str | None = None
    author: str | None = None
    publisher: str | None = None
    language: str | None = None
    identifier: str | None = None
    description: str | None = None
    cover_path: Path | None = field(default=None)

    def __post_init__(self) -> None:
        for f in fields(self):
            if f.name in FIELD_NAMES:
                object.__setattr__(self, f.name, _blank_to_none(getattr(self, f.name)))
        if self.cover_path is not None and not isinstance(self.cover_path, Path):
            object.__setattr__(self, "cover_path", Path(self.cover_path))

    @property
    def is_empty(self) -> bool:
        """True when the request changes neither a field nor the cover."""
        return not self.field_values() and self.cover_path is None

    def field_values(self) -> dict[str, str]:
        """The fields this request sets, in canonical field order."""
        values = {}
        for name in FIELD_NAMES:
            value = getattr(self, name)
            if value is not None:
                values[name] = value
        return values

    def validate(self) -> None:
        """Reject an empty or unstorable request before any I/O happens.

        Raises:
            NoChangesError: If no field and no cover is set.
            InvalidValueError: If a value holds characters XML cannot represent.
        """
        if self.is_empty:
            raise NoChangesError()
        for name, value in self.field_values().items():
            match = _XML_ILLEGAL.search(value)
            if match:
                raise InvalidValueError(
                    name, f"character U+{ord(match.group()):04X} is not allowed in XML"
                )
