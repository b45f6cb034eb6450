# ABOUTME: Shared pytest fixtures for epubedit tests.
# ABOUTME: Builds hand-made OCF containers, producer-made EPUBs via ebooklib, and corrupt files.

import zipfile
from collections.abc import Callable
from pathlib import Path

import pytest
from ebooklib import epub

JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00old cover pixels"
PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDRnew cover pixels"

CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="{opf_path}" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""

CHAPTER_XHTML = """<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml"><head><title>Chapter</title></head>
<body><p>Text.</p></body></html>
"""

# Chinese title, cover declared through the cover-image property
SCENARIO_OPF = """<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="3.0" unique-identifier="bookid">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:identifier id="bookid">urn:uuid:0f5c1a52-7d4e-4c1b-9a57-3f1f0c6d2b11</dc:identifier>
    <dc:title>旧标题</dc:title>
    <dc:creator>Old Author</dc:creator>
    <dc:language>zh</dc:language>
  </metadata>
  <manifest>
    <item id="cover-img" href="Images/old.jpg" media-type="image/jpeg" properties="cover-image"/>
    <item id="chap1" href="Text/chap1.xhtml" media-type="application/xhtml+xml"/>
  </manifest>
  <spine>
    <itemref idref="chap1"/>
  </spine>
</package>
"""

# EPUB 2 style: cover found through <meta name="cover">, opf: prefixed elements
META_COVER_OPF = """<?xml version="1.0" encoding="UTF-8"?>
<opf:package xmlns:opf="http://www.idpf.org/2007/opf" version="2.0" unique-identifier="uid">
  <opf:metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:title>Legacy Book</dc:title>
    <dc:creator>Jane Doe</dc:creator>
    <dc:publisher>Old House</dc:publisher>
    <dc:identifier id="uid">isbn-0000</dc:identifier>
    <opf:meta name="cover" content="front"/>
  </opf:metadata>
  <opf:manifest>
    <opf:item id="front" href="images/front.jpg" media-type="image/jpeg"/>
    <opf:item id="c1" href="c1.xhtml" media-type="application/xhtml+xml"/>
  </opf:manifest>
  <opf:spine>
    <opf:itemref idref="c1"/>
  </opf:spine>
</opf:package>
"""

NO_COVER_OPF = """<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="3.0">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:title>Plain Book</dc:title>
  </metadata>
  <manifest>
    <item id="c1" href="c1.xhtml" media-type="application/xhtml+xml"/>
  </manifest>
  <spine>
    <itemref idref="c1"/>
  </spine>
</package>
"""

EpubFactory = Callable[..., Path]


def write_epub_archive(
    path: Path,
    opf: str | None,
    *,
    opf_path: str = "OEBPS/content.opf",
    files: dict[str, bytes | str] | None = None,
    container: bool = True,
    mimetype: bool = True,
) -> Path:
    """Write an OCF zip archive entry by entry, mimetype first and stored."""
    with zipfile.ZipFile(path, "w") as zf:
        if mimetype:
            zf.writestr("mimetype", "application/epub+zip", compress_type=zipfile.ZIP_STORED)
        if container:
            zf.writestr(
                "META-INF/container.xml",
                CONTAINER_XML.format(opf_path=opf_path),
                compress_type=zipfile.ZIP_DEFLATED,
            )
        if opf is not None:
            zf.writestr(opf_path, opf.encode("utf-8"), compress_type=zipfile.ZIP_DEFLATED)
        for name, data in (files or {}).items():
            zf.writestr(name, data, compress_type=zipfile.ZIP_DEFLATED)
    return path


@pytest.fixture
def make_epub(tmp_path: Path) -> EpubFactory:
    """Factory building hand-made EPUBs under tmp_path/books."""
    books = tmp_path / "books"
    books.mkdir(exist_ok=True)

    def factory(name: str, opf: str | None, **kwargs) -> Path:
        return write_epub_archive(books / name, opf, **kwargs)

    return factory


@pytest.fixture
def scenario_epub(make_epub: EpubFactory) -> Path:
    """EPUB 3 with a Chinese title and a cover at OEBPS/Images/old.jpg."""
    return make_epub(
        "scenario.epub",
        SCENARIO_OPF,
        files={
            "OEBPS/Images/old.jpg": JPEG_BYTES,
            "OEBPS/Text/chap1.xhtml": CHAPTER_XHTML,
        },
    )


@pytest.fixture
def meta_cover_epub(make_epub: EpubFactory) -> Path:
    """EPUB 2 whose cover is referenced by <meta name="cover">."""
    return make_epub(
        "legacy.epub",
        META_COVER_OPF,
        files={
            "OEBPS/images/front.jpg": JPEG_BYTES,
            "OEBPS/c1.xhtml": CHAPTER_XHTML,
        },
    )


@pytest.fixture
def no_cover_epub(make_epub: EpubFactory) -> Path:
    """EPUB without any cover reference."""
    return make_epub("plain.epub", NO_COVER_OPF, files={"OEBPS/c1.xhtml": CHAPTER_XHTML})


@pytest.fixture
def broken_opf_epub(make_epub: EpubFactory) -> Path:
    """A well-formed zip whose package document is missing </metadata>."""
    return make_epub(
        "broken_opf.epub",
        SCENARIO_OPF.replace("</metadata>", ""),
        files={
            "OEBPS/Images/old.jpg": JPEG_BYTES,
            "OEBPS/Text/chap1.xhtml": CHAPTER_XHTML,
        },
    )


@pytest.fixture
def png_cover(tmp_path: Path) -> Path:
    """A replacement cover image file."""
    path = tmp_path / "new.png"
    path.write_bytes(PNG_BYTES)
    return path


@pytest.fixture
def sample_epub(tmp_path: Path) -> Path:
    """Create a valid EPUB with known metadata and a cover, as a producer writes it."""
    book = epub.EpubBook()

    book.set_identifier("test-isbn-978-0-123456-47-2")
    book.set_title("The Name of the Rose")
    book.set_language("en")
    book.add_author("Umberto Eco")

    book.add_metadata("DC", "publisher", "Harcourt")
    book.add_metadata("DC", "description", "A mystery set in a medieval monastery.")
    book.set_cover("cover.jpg", JPEG_BYTES)

    chapter = epub.EpubHtml(title="Chapter 1", file_name="chap01.xhtml", lang="en")
    chapter.content = b"<html><body><h1>Chapter 1</h1><p>Content.</p></body></html>"
    book.add_item(chapter)

    book.toc = [epub.Link("chap01.xhtml", "Chapter 1", "chap01")]
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = ["nav", chapter]

    filepath = tmp_path / "name_of_the_rose.epub"
    epub.write_epub(str(filepath), book)
    return filepath


@pytest.fixture
def corrupt_epub(tmp_path: Path) -> Path:
    """Create a corrupt file that is not a valid EPUB."""
    filepath = tmp_path / "corrupt.epub"
    filepath.write_text("this is not a valid epub file")
    return filepath


@pytest.fixture
def old_cover_bytes() -> bytes:
    """Bytes of the cover image stored in the hand-made fixtures."""
    return JPEG_BYTES
