"""Tests for the books HTTP API."""

import pytest
from fastapi.testclient import TestClient
from starlette.datastructures import UploadFile

from app.web.app import app
from app.web.routers import books
from tests.factories import JPEG, XHTML, build_chapter_xhtml, build_nav, build_opf, make_epub

client = TestClient(app)


def _epub() -> bytes:
    opf = build_opf(
        [
            ("nav", "nav.xhtml", XHTML, "nav"),
            ("cover", "images/cover.jpg", JPEG, "cover-image"),
            ("ch1", "text/ch1.xhtml", XHTML),
            ("ch2", "text/ch2.xhtml", XHTML),
        ],
        spine=["ch1", "ch2"],
        guide=[("text", "Begin", "text/ch1.xhtml#top")],
        metadata="<dc:title>Web Book</dc:title><dc:creator>Someone</dc:creator>",
    )
    return make_epub({
        "OEBPS/content.opf": opf,
        "OEBPS/nav.xhtml": build_nav([
            ("Chapter 1", "text/ch1.xhtml", [("Part A", "text/ch1.xhtml#a")]),
            ("Chapter 2", "text/ch2.xhtml"),
        ]),
        "OEBPS/images/cover.jpg": b"\xff\xd8\xffjpeg",
        "OEBPS/text/ch1.xhtml": build_chapter_xhtml(),
        "OEBPS/text/ch2.xhtml": build_chapter_xhtml("<p>Two</p>"),
    })


def _upload(data: bytes, **form) -> dict:
    response = client.post(
        "/api/books",
        files={"file": ("book.epub", data, "application/epub+zip")},
        data=form,
    )
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def book_id() -> str:
    return _upload(_epub())["book_id"]


class TestUpload:
    """Tests for POST /api/books."""

    def test_summary(self):
        body = _upload(_epub())
        assert body["title"] == "Web Book"
        assert body["creators"] == ["Someone"]
        assert body["toc_resource"] == "OEBPS/nav.xhtml"
        assert body["toc_format"] == "nav"
        assert body["cover_image"] == "OEBPS/images/cover.jpg"
        assert body["cover_page"] == "OEBPS/text/ch1.xhtml"
        assert body["spine_count"] == 2
        assert body["toc_count"] == 3

    def test_invalid_epub_is_422(self):
        response = client.post("/api/books", files={"file": ("x.epub", b"garbage", "application/epub+zip")})
        assert response.status_code == 422
        assert "not a valid EPUB" in response.json()["detail"]

    def test_require_toc_form_field(self):
        opf = build_opf([("ch1", "ch1.xhtml", XHTML)])
        data = make_epub({"OEBPS/content.opf": opf, "OEBPS/ch1.xhtml": build_chapter_xhtml()})

        response = client.post("/api/books", files={"file": ("x.epub", data, "application/epub+zip")})
        assert response.status_code == 422

        body = _upload(data, require_toc="false")
        assert body["toc_resource"] is None
        assert body["toc_format"] is None

    def test_too_large_is_413(self, monkeypatch):
        monkeypatch.setattr(books.config, "max_upload_bytes", 10)
        response = client.post("/api/books", files={"file": ("x.epub", _epub(), "application/epub+zip")})
        assert response.status_code == 413

    def test_upload_read_is_bounded(self, monkeypatch):
        """The upload is never read past the size limit plus one byte."""
        sizes = []
        original_read = UploadFile.read

        async def recording_read(self, size=-1):
            sizes.append(size)
            return await original_read(self, size)

        monkeypatch.setattr(UploadFile, "read", recording_read)
        monkeypatch.setattr(books.config, "max_upload_bytes", 1_000_000)
        _upload(_epub())
        assert sizes == [1_000_001]

    def test_declared_size_rejected_before_reading(self, monkeypatch):
        sizes = []

        async def recording_read(self, size=-1):
            sizes.append(size)
            return b""

        monkeypatch.setattr(UploadFile, "read", recording_read)
        monkeypatch.setattr(books.config, "max_upload_bytes", 10)
        response = client.post("/api/books", files={"file": ("x.epub", _epub(), "application/epub+zip")})
        assert response.status_code == 413
        assert sizes == []

    def test_oldest_book_evicted(self, monkeypatch):
        monkeypatch.setattr(books.config, "max_books", 1)
        first = _upload(_epub())["book_id"]
        second = _upload(_epub())["book_id"]
        assert client.get(f"/api/books/{first}").status_code == 404
        assert client.get(f"/api/books/{second}").status_code == 200


class TestQueries:
    """Tests for the per-book GET endpoints."""

    def test_get_book(self, book_id):
        response = client.get(f"/api/books/{book_id}")
        assert response.status_code == 200
        assert response.json()["book_id"] == book_id

    def test_unknown_book_is_404(self):
        assert client.get("/api/books/nope/toc").status_code == 404

    def test_toc_tree(self, book_id):
        toc = client.get(f"/api/books/{book_id}/toc").json()["toc"]
        assert [node["title"] for node in toc] == ["Chapter 1", "Chapter 2"]
        assert toc[0]["href"] == "OEBPS/text/ch1.xhtml"
        assert toc[0]["children"] == [
            {"title": "Part A", "href": "OEBPS/text/ch1.xhtml#a", "children": []},
        ]

    def test_spine(self, book_id):
        body = client.get(f"/api/books/{book_id}/spine").json()
        assert body["toc"] == "OEBPS/nav.xhtml"
        assert [item["id"] for item in body["items"]] == ["ch1", "ch2"]
        assert body["items"][0]["media_type"] == "application/xhtml+xml"
        assert body["items"][0]["linear"] is True

    def test_guide(self, book_id):
        refs = client.get(f"/api/books/{book_id}/guide").json()["references"]
        assert refs == [{"type": "text", "title": "Begin", "href": "OEBPS/text/ch1.xhtml#top"}]

    def test_resource_content(self, book_id):
        response = client.get(f"/api/books/{book_id}/resources/OEBPS/text/ch2.xhtml")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xhtml+xml")
        assert b"<p>Two</p>" in response.content

    def test_unknown_resource_is_404(self, book_id):
        assert client.get(f"/api/books/{book_id}/resources/OEBPS/missing.xhtml").status_code == 404

    def test_cover(self, book_id):
        response = client.get(f"/api/books/{book_id}/cover")
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"
        assert response.content == b"\xff\xd8\xffjpeg"

    def test_root(self):
        assert client.get("/").json()["message"] == "epubnav API"
