"""读取完成后的 Book 后处理钩子。"""

from __future__ import annotations

from typing import Protocol

from core.epub.model import Book


class BookProcessor(Protocol):
    def process_book(self, book: Book) -> Book:
        ...


class IdentityProcessor:
    """原样返回 Book。"""

    def process_book(self, book: Book) -> Book:
        return book


IDENTITY_PROCESSOR = IdentityProcessor()
