"""EPUB 读取入口：解包 → container.xml → OPF → 目录，返回 Book。

流程：
  1. ZIP 中每个文件读成 Resource（按 ZIP 内路径索引）
  2. 读取 META-INF/container.xml 找到 OPF 路径
  3. 解析 OPF：manifest → guide → spine → 封面
  4. 解析 spine 指定的目录文件（NCX 或 EPUB3 导航文档）
  5. 依次执行 BookProcessor
"""

from __future__ import annotations

import io
import zipfile
from pathlib import Path
from typing import Iterable

from loguru import logger

from core.config import ReaderConfig
from core.epub import mediatype, xmlquery as xq
from core.epub.errors import ReadingError
from core.epub.metadata import read_metadata
from core.epub.model import Book
from core.epub.navigation import read_navigation
from core.epub.package import read_package
from core.epub.processor import BookProcessor
from core.epub.resources import Resource, ResourceIndex

CONTAINER_PATH = "META-INF/container.xml"


def read_epub(
    source: str | Path | bytes,
    config: ReaderConfig | None = None,
    processors: Iterable[BookProcessor] = (),
) -> Book:
    """读取 EPUB 文件（路径或字节串），返回完整的 Book。"""
    config = config or ReaderConfig()
    with _open_zip(source) as zf:
        raw_resources = load_resources(zf)
    return read_book(raw_resources, config, processors)


def read_book(
    raw_resources: ResourceIndex,
    config: ReaderConfig | None = None,
    processors: Iterable[BookProcessor] = (),
) -> Book:
    """由已按 ZIP 路径索引的原始资源构建 Book。raw_resources 会被消耗。"""
    config = config or ReaderConfig()

    package_path = find_package_path(raw_resources)
    opf_resource = raw_resources.remove(package_path)
    if opf_resource is None:
        logger.error("package document {} not found in archive", package_path)
        raise ReadingError(f"package document {package_path} not found in archive")
    opf_resource.media_type = mediatype.OPF
    package_root = xq.parse_xml(opf_resource.data, f"package document {package_path}")

    contents = read_package(package_root, package_path, raw_resources, config)

    book = Book(resources=contents.resources, guide=contents.guide, spine=contents.spine)
    book.metadata = read_metadata(package_root)
    book.add_resource(opf_resource)
    book.opf_resource = opf_resource
    book.cover_page = contents.cover_page
    book.cover_image = contents.cover_image

    unlisted = raw_resources.all()
    if config.keep_unlisted:
        for resource in unlisted:
            book.add_resource(resource)
    elif unlisted:
        logger.debug("dropped {} archive entries not listed in manifest", len(unlisted))

    if book.spine.toc_resource is None and not config.require_toc:
        logger.warning("no table of contents resource, skipping navigation")
    else:
        book.table_of_contents = read_navigation(book, config=config)
        book.ncx_resource = book.spine.toc_resource

    for processor in processors:
        book = processor.process_book(book)
    return book


def load_resources(zf: zipfile.ZipFile) -> ResourceIndex:
    """ZIP 中每个非目录条目读成一个 Resource，媒体类型按扩展名猜测。"""
    resources = ResourceIndex()
    for info in zf.infolist():
        if info.is_dir():
            continue
        resources.add(Resource(href=info.filename, data=zf.read(info)))
    return resources


def find_package_path(resources: ResourceIndex) -> str:
    container = resources.get_by_href(CONTAINER_PATH)
    if container is None:
        logger.error("{} not found in archive", CONTAINER_PATH)
        raise ReadingError(f"{CONTAINER_PATH} not found in archive")
    root = xq.parse_xml(container.data, CONTAINER_PATH)
    package_path = xq.attribute(xq.first_descendant(root, "rootfile"), "full-path")
    if not package_path:
        logger.error("{} has no rootfile element", CONTAINER_PATH)
        raise ReadingError(f"{CONTAINER_PATH} has no rootfile element with a full-path")
    return package_path


def _open_zip(source: str | Path | bytes) -> zipfile.ZipFile:
    try:
        if isinstance(source, bytes):
            return zipfile.ZipFile(io.BytesIO(source))
        return zipfile.ZipFile(Path(source))
    except zipfile.BadZipFile as e:
        raise ReadingError(f"not a valid EPUB archive: {e}") from e
