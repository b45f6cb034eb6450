# ABOUTME: Metadata package for EPUB metadata snapshots, edit requests, and filename helpers.
# ABOUTME: Exports the core dataclasses used by extraction, patching, and the CLI.

from epubedit.metadata.filename import (
    metadata_from_filename,
    rename_from_metadata,
    sanitize_filename,
    title_from_filename,
)
from epubedit.metadata.types import (
    FIELD_ELEMENTS,
    FIELD_NAMES,
    CoverImage,
    EditRequest,
    EpubMetadata,
    media_type_for_extension,
)

__all__ = [
    "FIELD_ELEMENTS",
    "FIELD_NAMES",
    "CoverImage",
    "EditRequest",
    "EpubMetadata",
    "media_type_for_extension",
    "metadata_from_filename",
    "rename_from_metadata",
    "sanitize_filename",
    "title_from_filename",
]
