"""ZIP 内路径解析：相对引用解析、片段拆分、百分号解码。

所有路径都是 ZIP 内的 POSIX 风格路径（以 "/" 分隔，不以 "/" 开头），
解析过程纯字符串操作，不访问文件系统。
"""

from __future__ import annotations

import posixpath
import re
from urllib.parse import unquote

from loguru import logger

FRAGMENT_SEPARATOR = "#"

# 合法的百分号转义：%XX
_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def resolve(base_path: str, reference: str) -> str:
    """以 base_path 所在目录为根，解析 reference，返回规范化后的 ZIP 内路径。

    reference 中的片段（"#" 之后部分）原样保留在结果末尾。
    以 "/" 开头的 reference 视为相对 ZIP 根目录。

        >>> resolve("OEBPS/content.opf", "../images/cover.jpg#top")
        'images/cover.jpg#top'
    """
    path, fragment = split_fragment(reference)
    if path.startswith("/"):
        joined = path.lstrip("/")
    else:
        base_dir = dirname(base_path)
        if not path:
            # 纯片段引用：指向 base_path 自身
            joined = base_path
        elif base_dir:
            joined = f"{base_dir}/{path}"
        else:
            joined = path
    resolved = normalize(joined)
    if fragment:
        return f"{resolved}{FRAGMENT_SEPARATOR}{fragment}"
    return resolved


def normalize(path: str) -> str:
    """折叠 "." 与 ".." 段，与 posixpath.normpath 一致，但空路径返回 ""。"""
    if not path:
        return ""
    result = posixpath.normpath(path)
    if result == ".":
        return ""
    # normpath 会保留开头的 "//"
    return result.lstrip("/")


def dirname(path: str) -> str:
    """最后一个 "/" 之前的部分；无分隔符时为 ""。"""
    return path.rpartition("/")[0]


def split_fragment(path: str) -> tuple[str, str]:
    """按第一个 "#" 拆分为 (路径, 片段)；无片段时片段为 ""。"""
    head, _, fragment = path.partition(FRAGMENT_SEPARATOR)
    return head, fragment


def strip_fragment(path: str) -> str:
    return split_fragment(path)[0]


def decode_href(href: str) -> str:
    """百分号解码。转义非法或解码结果不是 UTF-8 时记录日志并返回原值。

    "+" 不解码为空格（ZIP 内文件名可以合法包含 "+"），
    与表单解码（urllib.parse.unquote_plus）的处理不同。
    """
    if "%" not in href:
        return href
    if _BAD_ESCAPE_RE.search(href):
        logger.warning("malformed percent-encoding in href={!r}, using raw value", href)
        return href
    try:
        return unquote(href, errors="strict")
    except UnicodeDecodeError as e:
        logger.warning("cannot decode href={!r}: {}, using raw value", href, e)
        return href
