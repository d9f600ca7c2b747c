"""目录解析：EPUB2 NCX 与 EPUB3 导航文档两种格式。

两种格式的 href 解析基准不同：
- NCX 的 content/@src 相对于 OPF 文件路径解析（Book 没有 OPF 资源时退回到 NCX 自身路径）
- 导航文档的 a/@href 相对于导航文档自身所在目录解析

引用的资源不存在时只记录日志，节点仍保留标题（resource 为 None）。
"""

from __future__ import annotations

from loguru import logger
from lxml import etree

from core.config import ReaderConfig
from core.epub import paths, xmlquery as xq
from core.epub.errors import ReadingError
from core.epub.model import Book, TableOfContents, TOCReference
from core.epub.resources import Resource, ResourceIndex

NAV_TYPE_TOC = "toc"


def read_navigation(
    book: Book,
    toc_root: etree._Element | None = None,
    config: ReaderConfig | None = None,
) -> TableOfContents:
    """解析 book.spine.toc_resource 指向的目录文件，返回目录树。

    toc_root 为已解析的目录文件根元素；为 None 时从资源内容解析。
    """
    config = config or ReaderConfig()
    toc_resource = book.spine.toc_resource
    if toc_resource is None:
        logger.error("book does not contain a table of contents file")
        raise ReadingError("book does not contain a table of contents file")

    if toc_root is None:
        toc_root = xq.parse_xml_lenient(toc_resource.data)
        if toc_root is None:
            logger.warning("table of contents {} could not be parsed", toc_resource.href)
            return TableOfContents()

    if is_navigation_document(toc_resource, config):
        references = read_nav_document(toc_root, toc_resource.href, book.resources)
    else:
        if book.opf_resource is not None:
            opf_href = book.opf_resource.href
        else:
            opf_href = toc_resource.href
            logger.debug("book has no package document resource, resolving ncx hrefs against {}", opf_href)
        references = read_ncx(toc_root, opf_href, book.resources)

    toc = TableOfContents(references)
    logger.info("toc {}  entries={} depth={}", toc_resource.href, toc.size(), toc.calculate_depth())
    return toc


def is_navigation_document(resource: Resource, config: ReaderConfig | None = None) -> bool:
    """properties 整体以 nav 开头（忽略大小写）才按导航文档解析，否则按 NCX 解析。"""
    config = config or ReaderConfig()
    return resource.properties.lower().startswith(config.nav_property.lower())


# ── EPUB2 NCX ───────────────────────────────────────────────────────────────


def read_ncx(ncx_root: etree._Element, opf_href: str, resources: ResourceIndex) -> list[TOCReference]:
    nav_map = xq.first_descendant(ncx_root, "navMap")
    if nav_map is None:
        logger.warning("ncx document has no navMap element")
        return []
    return _read_nav_points(nav_map, opf_href, resources, [])


def _read_nav_points(
    parent: etree._Element,
    opf_href: str,
    resources: ResourceIndex,
    result: list[TOCReference],
) -> list[TOCReference]:
    for nav_point in xq.children(parent, "navPoint"):
        result.append(_read_nav_point(nav_point, opf_href, resources))
    return result


def _read_nav_point(nav_point: etree._Element, opf_href: str, resources: ResourceIndex) -> TOCReference:
    label = xq.text_content(xq.first_child(xq.first_child(nav_point, "navLabel"), "text"))
    src = paths.decode_href(xq.attribute(xq.first_child(nav_point, "content"), "src"))
    resource, fragment_id = None, ""
    if src:
        href, fragment_id = paths.split_fragment(paths.resolve(opf_href, src))
        resource = resources.get_by_href(href)
        if resource is None:
            logger.warning("resource with href {} in ncx document not found", href)
    else:
        logger.warning("navPoint {!r} has no content src", label)

    reference = TOCReference(label, resource, fragment_id)
    _read_nav_points(nav_point, opf_href, resources, reference.children)
    return reference


# ── EPUB3 导航文档 ───────────────────────────────────────────────────────────


def read_nav_document(nav_root: etree._Element, nav_href: str, resources: ResourceIndex) -> list[TOCReference]:
    nav_el = xq.find_first(nav_root, "nav", "type", NAV_TYPE_TOC, token=True)
    if nav_el is None:
        logger.warning("navigation document {} has no nav element of type toc", nav_href)
        return []
    ol = xq.first_descendant(nav_el, "ol")
    return _read_nav_list(ol, nav_href, resources, [])


def _read_nav_list(
    ol: etree._Element | None,
    nav_href: str,
    resources: ResourceIndex,
    result: list[TOCReference],
) -> list[TOCReference]:
    """遍历 <ol> 下的 <li>：第一层 <a> 生成节点，同一 <li> 内嵌套的 <ol> 作为子节点。"""
    for li in xq.children(ol, "li"):
        references = [_read_anchor(a, nav_href, resources) for a in xq.children(li, "a")]
        if not references:
            # 只有 <span> 标题、没有链接的分组项
            heading = xq.first_child(li, "span")
            if heading is None:
                continue
            references = [TOCReference(xq.text_content(heading))]
        result.extend(references)
        _read_nav_list(xq.first_child(li, "ol"), nav_href, resources, references[0].children)
    return result


def _read_anchor(anchor: etree._Element, nav_href: str, resources: ResourceIndex) -> TOCReference:
    label = xq.text_content(anchor)
    raw_href = paths.decode_href(xq.attribute(anchor, "href"))
    if not raw_href:
        return TOCReference(label)

    href, fragment_id = paths.split_fragment(paths.resolve(nav_href, raw_href))
    resource = resources.get_by_href(href)
    if resource is None:
        logger.warning("resource with href {} in navigation document not found", href)
    return TOCReference(label, resource, fragment_id)
