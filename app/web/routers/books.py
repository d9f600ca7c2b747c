"""书籍结构查询 API 路由。

上传的书籍解析后保存在进程内存中，供阅读器按 id 查询目录、阅读顺序与资源内容。
"""

from __future__ import annotations

import uuid
from collections import OrderedDict
from dataclasses import replace

from fastapi import APIRouter, Form, HTTPException, UploadFile
from fastapi.responses import Response
from loguru import logger

from core.config import WebConfig
from core.epub.errors import ReadingError
from core.epub.model import Book, TOCReference
from core.epub.navigation import is_navigation_document
from core.epub.reader import read_epub
from core.epub.resources import Resource

router = APIRouter(prefix="/api", tags=["books"])

config = WebConfig()

_books: OrderedDict[str, Book] = OrderedDict()


@router.post("/books")
async def upload_book(file: UploadFile, require_toc: bool = Form(True)) -> dict:
    """上传 EPUB 并解析，返回 book_id 与概要。"""
    if file.size is not None and file.size > config.max_upload_bytes:
        raise HTTPException(status_code=413, detail="EPUB file too large")
    # 最多读取上限 + 1 字节，不缓冲超限的整个上传
    data = await file.read(config.max_upload_bytes + 1)
    if len(data) > config.max_upload_bytes:
        raise HTTPException(status_code=413, detail="EPUB file too large")

    reader_config = replace(config.effective_reader(), require_toc=require_toc)
    try:
        book = read_epub(data, reader_config)
    except ReadingError as e:
        logger.warning("upload {} rejected: {}", file.filename, e)
        raise HTTPException(status_code=422, detail=str(e))

    book_id = str(uuid.uuid4())
    _books[book_id] = book
    while len(_books) > config.max_books:
        evicted, _ = _books.popitem(last=False)
        logger.info("evicted book {}", evicted)

    logger.info("stored book {} from {}", book_id, file.filename)
    return {"book_id": book_id, **_summary(book)}


@router.get("/books/{book_id}")
async def get_book(book_id: str) -> dict:
    return {"book_id": book_id, **_summary(_get_book(book_id))}


@router.get("/books/{book_id}/toc")
async def get_toc(book_id: str) -> dict:
    book = _get_book(book_id)
    return {"toc": [_toc_node(ref) for ref in book.table_of_contents.references]}


@router.get("/books/{book_id}/spine")
async def get_spine(book_id: str) -> dict:
    book = _get_book(book_id)
    return {
        "toc": _href(book.spine.toc_resource),
        "items": [
            {
                "id": ref.resource.id,
                "href": ref.resource.href,
                "media_type": _media_type(ref.resource),
                "linear": ref.linear,
            }
            for ref in book.spine
        ],
    }


@router.get("/books/{book_id}/guide")
async def get_guide(book_id: str) -> dict:
    book = _get_book(book_id)
    return {
        "references": [
            {"type": ref.type, "title": ref.title, "href": ref.complete_href}
            for ref in book.guide.references
        ],
    }


@router.get("/books/{book_id}/resources/{href:path}")
async def get_resource(book_id: str, href: str) -> Response:
    """按 ZIP 内路径返回资源原始内容。"""
    book = _get_book(book_id)
    resource = book.resources.get_by_href(href)
    if resource is None:
        raise HTTPException(status_code=404, detail="Resource not found")
    return Response(content=resource.data, media_type=_media_type(resource) or "application/octet-stream")


@router.get("/books/{book_id}/cover")
async def get_cover(book_id: str) -> Response:
    book = _get_book(book_id)
    if book.cover_image is None:
        raise HTTPException(status_code=404, detail="Book has no cover image")
    return Response(content=book.cover_image.data, media_type=_media_type(book.cover_image))


def _get_book(book_id: str) -> Book:
    book = _books.get(book_id)
    if book is None:
        raise HTTPException(status_code=404, detail="Book not found")
    return book


def _summary(book: Book) -> dict:
    toc_resource = book.spine.toc_resource
    return {
        "title": book.title,
        "creators": book.metadata.creators,
        "languages": book.metadata.languages,
        "opf": _href(book.opf_resource),
        "toc_resource": _href(toc_resource),
        "toc_format": (
            None if toc_resource is None
            else "nav" if is_navigation_document(toc_resource) else "ncx"
        ),
        "cover_page": _href(book.cover_page),
        "cover_image": _href(book.cover_image),
        "resource_count": len(book.resources),
        "spine_count": book.spine.size(),
        "toc_count": book.table_of_contents.size(),
    }


def _toc_node(ref: TOCReference) -> dict:
    return {
        "title": ref.title,
        "href": ref.complete_href or None,
        "children": [_toc_node(child) for child in ref.children],
    }


def _href(resource: Resource | None) -> str | None:
    return resource.href if resource is not None else None


def _media_type(resource: Resource) -> str | None:
    return resource.media_type.name if resource.media_type is not None else None
