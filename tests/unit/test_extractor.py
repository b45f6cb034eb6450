# ABOUTME: Unit tests for EPUB metadata extraction.
# ABOUTME: Covers field reading, the three cover lookup rules, and best-effort failure handling.

import logging
from pathlib import Path

import pytest

from epubedit.errors import CorruptError, NotFoundError
from epubedit.formats.epub import extract, read_epub_metadata

PLAIN_OPF = """<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="3.0">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:title>  </dc:title>
    <dc:creator>
      Padded Name
    </dc:creator>
  </metadata>
  <manifest>
    {items}
  </manifest>
</package>
"""


def _opf(items: str = "") -> str:
    return PLAIN_OPF.replace("{items}", items)


class TestReadEpubMetadata:
    """Tests for read_epub_metadata field extraction."""

    def test_reads_hand_made_fields(self, scenario_epub: Path) -> None:
        meta = read_epub_metadata(scenario_epub)
        assert meta.title == "旧标题"
        assert meta.author == "Old Author"
        assert meta.language == "zh"
        assert meta.identifier == "urn:uuid:0f5c1a52-7d4e-4c1b-9a57-3f1f0c6d2b11"
        assert meta.publisher is None
        assert meta.description is None

    def test_reads_producer_fields(self, sample_epub: Path) -> None:
        meta = read_epub_metadata(sample_epub)
        assert meta.title == "The Name of the Rose"
        assert meta.author == "Umberto Eco"
        assert meta.language == "en"
        assert meta.publisher == "Harcourt"
        assert meta.identifier == "test-isbn-978-0-123456-47-2"
        assert meta.description == "A mystery set in a medieval monastery."

    def test_prefixed_elements(self, meta_cover_epub: Path) -> None:
        meta = read_epub_metadata(meta_cover_epub)
        assert meta.title == "Legacy Book"
        assert meta.publisher == "Old House"

    def test_blank_is_none_and_text_is_trimmed(self, make_epub) -> None:
        meta = read_epub_metadata(make_epub("blank.epub", _opf()))
        assert meta.title is None
        assert meta.author == "Padded Name"

    def test_missing_container_raises_not_found(self, make_epub) -> None:
        path = make_epub("nocontainer.epub", _opf(), container=False)
        with pytest.raises(NotFoundError):
            read_epub_metadata(path)

    def test_missing_package_document_raises_not_found(self, make_epub) -> None:
        path = make_epub("noopf.epub", None)
        with pytest.raises(NotFoundError):
            read_epub_metadata(path)

    def test_corrupt_raises(self, corrupt_epub: Path) -> None:
        with pytest.raises(CorruptError):
            read_epub_metadata(corrupt_epub)

    def test_missing_file_raises_not_found(self, tmp_path: Path) -> None:
        with pytest.raises(NotFoundError):
            read_epub_metadata(tmp_path / "nope.epub")

    def test_work_dir_left_empty(self, scenario_epub: Path, tmp_path: Path) -> None:
        """The temporary unpack directory is removed after reading."""
        work = tmp_path / "work"
        work.mkdir()
        read_epub_metadata(scenario_epub, work_dir=work)
        assert list(work.iterdir()) == []


class TestCoverExtraction:
    """Tests for the cover lookup order."""

    def test_cover_image_property(self, scenario_epub: Path, old_cover_bytes: bytes) -> None:
        cover = read_epub_metadata(scenario_epub).cover
        assert cover is not None
        assert cover.data == old_cover_bytes
        assert cover.extension == "jpg"
        assert cover.media_type == "image/jpeg"

    def test_meta_cover_reference(self, meta_cover_epub: Path, old_cover_bytes: bytes) -> None:
        assert read_epub_metadata(meta_cover_epub).cover.data == old_cover_bytes

    def test_producer_cover(self, sample_epub: Path, old_cover_bytes: bytes) -> None:
        meta = read_epub_metadata(sample_epub)
        assert meta.has_cover
        assert meta.cover.data == old_cover_bytes

    def test_conventional_name_case_insensitive(self, make_epub) -> None:
        path = make_epub("conv.epub", _opf(), files={"OEBPS/Cover.PNG": b"png bytes"})
        cover = read_epub_metadata(path).cover
        assert cover.data == b"png bytes"
        assert cover.extension == "png"

    def test_percent_encoded_href(self, make_epub) -> None:
        items = (
            '<item id="c" href="Images/my%20cover.jpg" media-type="image/jpeg" '
            'properties="cover-image"/>'
        )
        path = make_epub(
            "encoded.epub", _opf(items), files={"OEBPS/Images/my cover.jpg": b"spaced"}
        )
        assert read_epub_metadata(path).cover.data == b"spaced"

    def test_dangling_reference_falls_through(self, make_epub) -> None:
        """A cover item whose file is missing does not stop the later rules."""
        items = '<item id="c" href="gone.jpg" media-type="image/jpeg" properties="cover-image"/>'
        path = make_epub(
            "dangling.epub", _opf(items), files={"OEBPS/cover.jpg": b"fallback"}
        )
        assert read_epub_metadata(path).cover.data == b"fallback"

    def test_no_cover(self, no_cover_epub: Path) -> None:
        meta = read_epub_metadata(no_cover_epub)
        assert meta.cover is None
        assert meta.has_cover is False


class TestExtract:
    """Tests for the best-effort extract wrapper."""

    def test_returns_metadata(self, scenario_epub: Path) -> None:
        meta = extract(scenario_epub)
        assert meta is not None
        assert meta.title == "旧标题"

    def test_corrupt_returns_none_and_logs(
        self, corrupt_epub: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="epubedit"):
            assert extract(corrupt_epub) is None
        assert "Could not extract metadata" in caplog.text

    def test_missing_container_returns_none(self, make_epub) -> None:
        assert extract(make_epub("nocontainer.epub", _opf(), container=False)) is None
