"""End-to-end tests for read_epub over in-memory archives."""

import io
import zipfile

import pytest

from core.config import ReaderConfig
from core.epub import mediatype
from core.epub.errors import ReadingError
from core.epub.model import Book
from core.epub.processor import IDENTITY_PROCESSOR
from core.epub.reader import find_package_path, load_resources, read_epub
from tests.factories import (
    CSS,
    JPEG,
    NCX,
    XHTML,
    build_chapter_xhtml,
    build_nav,
    build_ncx,
    build_opf,
    make_epub,
    raw_index,
)

METADATA = """<dc:title>Sample</dc:title>
    <dc:creator>Author One</dc:creator>
    <dc:creator>Author Two</dc:creator>
    <dc:language>en</dc:language>
    <dc:identifier>urn:uuid:1234</dc:identifier>
    <meta name="cover" content="cover-img"/>"""


def _epub2() -> bytes:
    opf = build_opf(
        [
            ("cover-img", "images/cover.jpg", JPEG),
            ("ncx", "toc.ncx", NCX),
            ("css", "style.css", CSS),
            ("ch1", "text/ch1.xhtml", XHTML),
            ("ch2", "text/ch2.xhtml", XHTML),
        ],
        spine=["ch1", "ch2"],
        toc_id="ncx",
        guide=[("text", "Start", "text/ch1.xhtml")],
        metadata=METADATA,
    )
    return make_epub({
        "OEBPS/content.opf": opf,
        "OEBPS/toc.ncx": build_ncx([
            ("Chapter 1", "text/ch1.xhtml", [("Section 1.1", "text/ch1.xhtml#s1")]),
            ("Chapter 2", "text/ch2.xhtml"),
        ]),
        "OEBPS/style.css": "body {}",
        "OEBPS/images/cover.jpg": b"\xff\xd8\xff",
        "OEBPS/text/ch1.xhtml": build_chapter_xhtml(),
        "OEBPS/text/ch2.xhtml": build_chapter_xhtml(),
        "OEBPS/leftover.txt": "not in manifest",
    })


def _epub3() -> bytes:
    opf = build_opf(
        [
            ("nav", "text/nav.xhtml", XHTML, "nav"),
            ("ch1", "text/ch1.xhtml", XHTML),
        ],
        spine=["ch1"],
    )
    return make_epub({
        "OEBPS/content.opf": opf,
        "OEBPS/text/nav.xhtml": build_nav([("Chapter 1", "ch1.xhtml")]),
        "OEBPS/text/ch1.xhtml": build_chapter_xhtml(),
    })


class TestReadEpub:
    """Tests for the full read pipeline."""

    def test_epub2_book(self):
        book = read_epub(_epub2())

        assert book.title == "Sample"
        assert book.metadata.creators == ["Author One", "Author Two"]
        assert book.metadata.meta["cover"] == "cover-img"
        assert book.opf_resource.href == "OEBPS/content.opf"
        assert book.opf_resource.media_type == mediatype.OPF
        assert book.ncx_resource.href == "OEBPS/toc.ncx"
        assert [r.resource.id for r in book.spine] == ["ch1", "ch2"]
        assert book.cover_image.href == "OEBPS/images/cover.jpg"
        assert book.cover_page.id == "ch1"
        assert [r.title for r in book.guide.references] == ["Start"]

        toc = book.table_of_contents
        assert [r.title for r in toc.references] == ["Chapter 1", "Chapter 2"]
        assert toc.references[0].children[0].complete_href == "OEBPS/text/ch1.xhtml#s1"

    def test_unlisted_entries_dropped_by_default(self):
        book = read_epub(_epub2())
        assert book.resources.get_by_href("OEBPS/leftover.txt") is None
        assert book.resources.get_by_href("mimetype") is None
        assert book.resources.get_by_href("OEBPS/content.opf") is book.opf_resource

    def test_keep_unlisted(self):
        book = read_epub(_epub2(), ReaderConfig(keep_unlisted=True))
        leftover = book.resources.get_by_href("OEBPS/leftover.txt")
        assert leftover is not None
        assert leftover.id is None

    def test_every_reference_points_into_the_index(self):
        book = read_epub(_epub2())
        assert all(ref.resource in book.resources for ref in book.spine)
        assert all(ref.resource in book.resources for ref in book.guide.references)
        assert all(
            ref.resource in book.resources
            for _, ref in book.table_of_contents.walk()
            if ref.resource is not None
        )
        assert book.cover_image in book.resources

    def test_guide_cover_lands_on_book_only(self):
        """A guide cover reference sets Book.cover_page and is not kept in the guide."""
        opf = build_opf(
            [("cover", "cover.xhtml", XHTML), ("ncx", "toc.ncx", NCX), ("ch1", "ch1.xhtml", XHTML)],
            spine=["ch1"],
            toc_id="ncx",
            guide=[("cover", "Cover", "cover.xhtml"), ("text", "Start", "ch1.xhtml")],
        )
        book = read_epub(make_epub({
            "OEBPS/content.opf": opf,
            "OEBPS/toc.ncx": build_ncx([("One", "ch1.xhtml")]),
            "OEBPS/cover.xhtml": build_chapter_xhtml(),
            "OEBPS/ch1.xhtml": build_chapter_xhtml(),
        }))
        assert book.cover_page.id == "cover"
        assert book.guide.get_references_by_type("cover") == []
        assert [r.type for r in book.guide.references] == ["text"]

    def test_epub3_nav_document(self):
        book = read_epub(_epub3())
        assert book.ncx_resource.id == "nav"
        assert book.table_of_contents.references[0].resource.href == "OEBPS/text/ch1.xhtml"

    def test_reads_from_path(self, tmp_path):
        path = tmp_path / "book.epub"
        path.write_bytes(_epub3())
        assert read_epub(path).spine.size() == 1
        assert read_epub(str(path)).spine.size() == 1

    def test_processors_run_in_order(self):
        calls = []

        class Recorder:
            def __init__(self, name):
                self.name = name

            def process_book(self, book: Book) -> Book:
                calls.append(self.name)
                return book

        book = read_epub(_epub3(), processors=[Recorder("a"), IDENTITY_PROCESSOR, Recorder("b")])
        assert calls == ["a", "b"]
        assert isinstance(book, Book)


class TestMissingToc:
    """Tests for books without a table of contents file."""

    def _epub(self) -> bytes:
        opf = build_opf([("ch1", "ch1.xhtml", XHTML)])
        return make_epub({"OEBPS/content.opf": opf, "OEBPS/ch1.xhtml": build_chapter_xhtml()})

    def test_fatal_by_default(self):
        with pytest.raises(ReadingError, match="table of contents"):
            read_epub(self._epub())

    def test_skipped_when_not_required(self, log_messages):
        book = read_epub(self._epub(), ReaderConfig(require_toc=False))
        assert book.table_of_contents.size() == 0
        assert book.ncx_resource is None
        assert book.spine.size() == 1
        assert any("skipping navigation" in m for m in log_messages)


class TestFatalErrors:
    """Tests for archives that cannot be read at all."""

    def test_not_a_zip(self):
        with pytest.raises(ReadingError, match="not a valid EPUB"):
            read_epub(b"definitely not a zip")

    def test_missing_container(self):
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            zf.writestr("mimetype", "application/epub+zip")
        with pytest.raises(ReadingError, match="container.xml"):
            read_epub(buf.getvalue())

    def test_missing_package_document(self):
        with pytest.raises(ReadingError, match="not found in archive"):
            read_epub(make_epub({}))

    def test_malformed_package_document(self):
        with pytest.raises(ReadingError, match="not well-formed"):
            read_epub(make_epub({"OEBPS/content.opf": "<package><manifest>"}))

    def test_missing_manifest(self):
        opf = build_opf([], with_manifest=False)
        with pytest.raises(ReadingError, match="manifest"):
            read_epub(make_epub({"OEBPS/content.opf": opf}))


class TestArchiveHelpers:
    """Tests for load_resources and find_package_path."""

    def test_load_resources_skips_directories(self):
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            zf.writestr("OEBPS/", "")
            zf.writestr("OEBPS/a.xhtml", "<html/>")
        with zipfile.ZipFile(buf) as zf:
            resources = load_resources(zf)
        assert resources.all_hrefs() == ["OEBPS/a.xhtml"]
        assert resources.get_by_href("OEBPS/a.xhtml").data == b"<html/>"

    def test_find_package_path_without_rootfile(self):
        resources = raw_index(["META-INF/container.xml"])
        with pytest.raises(ReadingError, match="rootfile"):
            find_package_path(resources)
