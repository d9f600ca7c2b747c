"""读取 EPUB 时的致命错误。"""

from __future__ import annotations


class ReadingError(ValueError):
    """无法构建 Book 的致命错误，消息中说明缺失的前提条件。"""
