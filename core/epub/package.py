"""OPF 包文档解析：manifest → guide → spine → 封面。

输入为已解析的 OPF 根元素、OPF 在 ZIP 内的路径，以及按 ZIP 路径索引的原始资源；
输出为最终的资源索引、Guide、Spine 与封面资源。

manifest、guide、封面中的 href 都相对于 OPF 文件所在目录解析。
除缺少 manifest 元素外，所有引用缺失都只记录日志并跳过对应条目。
"""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger
from lxml import etree

from core.config import ReaderConfig
from core.epub import mediatype, paths, xmlquery as xq
from core.epub.errors import ReadingError
from core.epub.model import GUIDE_COVER, Guide, GuideReference, Spine, SpineReference
from core.epub.resources import Resource, ResourceIndex

LINEAR_NO = "no"


@dataclass
class PackageContents:
    resources: ResourceIndex
    guide: Guide
    spine: Spine
    cover_page: Resource | None = None
    cover_image: Resource | None = None
    # manifest 中声明的 id -> 最终分配的 id
    id_mapping: dict[str, str] = field(default_factory=dict)


def read_package(
    package_root: etree._Element,
    package_path: str,
    raw_resources: ResourceIndex,
    config: ReaderConfig | None = None,
) -> PackageContents:
    """解析 OPF 包文档。

    raw_resources 中被 manifest 认领的资源会从中移除并放入新的索引，
    剩余未被认领的资源留在 raw_resources 中由调用方处理。
    """
    config = config or ReaderConfig()

    resources, id_mapping = read_manifest(package_root, package_path, raw_resources)
    guide = read_guide(package_root, package_path, resources)
    spine = read_spine(package_root, resources, id_mapping, config)
    cover_page, cover_image = read_cover(package_root, package_path, resources, config)

    # 没有找到封面页时，以阅读顺序第一页作为封面页
    if cover_page is None and not spine.is_empty():
        cover_page = spine.get_resource(0)
        logger.debug("no cover page declared, using first spine item {}", cover_page.href)

    logger.info(
        "package {}  resources={} guide={} spine={} toc={}",
        package_path, len(resources), len(guide), len(spine),
        spine.toc_resource.href if spine.toc_resource else None,
    )
    return PackageContents(
        resources=resources,
        guide=guide,
        spine=spine,
        cover_page=cover_page,
        cover_image=cover_image,
        id_mapping=id_mapping,
    )


# ── manifest ────────────────────────────────────────────────────────────────


def read_manifest(
    package_root: etree._Element,
    package_path: str,
    raw_resources: ResourceIndex,
) -> tuple[ResourceIndex, dict[str, str]]:
    """按 manifest 认领原始资源，补上 id、媒体类型与 properties。

    Returns:
        (resources, id_mapping)
        resources: manifest 中列出且在 ZIP 中存在的资源
        id_mapping: 声明的 id -> 资源最终的 id，供 spine 解析时使用
    """
    manifest_el = xq.first_child(package_root, "manifest")
    if manifest_el is None:
        logger.error("package document {} has no manifest element", package_path)
        raise ReadingError(f"package document {package_path} does not contain a manifest element")

    result = ResourceIndex()
    id_mapping: dict[str, str] = {}
    for item in xq.children(manifest_el, "item"):
        item_id = xq.attribute(item, "id")
        declared_href = xq.attribute(item, "href")
        if not declared_href:
            logger.warning("manifest item id={!r} has no href", item_id)
            continue

        href = paths.resolve(package_path, paths.decode_href(declared_href))
        resource = raw_resources.remove(paths.strip_fragment(href))
        if resource is None:
            logger.warning("manifest item href={} not found in archive", declared_href)
            continue

        resource.id = item_id or None
        media_type = mediatype.get_media_type_by_name(xq.attribute(item, "media-type"))
        if media_type is not None:
            resource.media_type = media_type
        properties = xq.attribute(item, "properties")
        if properties.strip():
            resource.properties = properties.strip()

        result.add(resource)
        if item_id:
            id_mapping[item_id] = resource.id
    return result, id_mapping


def remap_id(id_mapping: dict[str, str], declared_id: str) -> str:
    return id_mapping.get(declared_id, declared_id)


# ── guide ───────────────────────────────────────────────────────────────────


def read_guide(
    package_root: etree._Element,
    package_path: str,
    resources: ResourceIndex,
) -> Guide:
    """读取 guide 中除 cover 以外的引用（cover 统一在 read_cover 中处理）。"""
    guide = Guide()
    guide_el = xq.first_child(package_root, "guide")
    if guide_el is None:
        return guide

    for ref_el in xq.children(guide_el, "reference"):
        declared_href = xq.attribute(ref_el, "href")
        if not declared_href.strip():
            continue
        decoded = paths.decode_href(declared_href)
        path, fragment = paths.split_fragment(decoded)
        resource = resources.get_by_href(paths.resolve(package_path, path))
        if resource is None:
            logger.warning("guide references href={} which could not be found", declared_href)
            continue
        ref_type = xq.attribute(ref_el, "type")
        if not ref_type.strip():
            logger.warning("guide reference href={} is missing the 'type' attribute", declared_href)
            continue
        if ref_type.lower() == GUIDE_COVER:
            continue
        guide.add_reference(GuideReference(
            resource=resource,
            type=ref_type,
            title=xq.attribute(ref_el, "title"),
            fragment_id=fragment,
        ))
    return guide


# ── spine ───────────────────────────────────────────────────────────────────


def read_spine(
    package_root: etree._Element,
    resources: ResourceIndex,
    id_mapping: dict[str, str],
    config: ReaderConfig | None = None,
) -> Spine:
    config = config or ReaderConfig()
    spine_el = xq.first_child(package_root, "spine")
    if spine_el is None:
        logger.warning("package document has no spine element, generating one from resources")
        return generate_spine(resources)

    spine = Spine()
    spine.toc_resource = find_toc_resource(xq.attribute(spine_el, "toc"), resources, config)

    for itemref in xq.children(spine_el, "itemref"):
        declared_id = xq.attribute(itemref, "idref")
        if not declared_id.strip():
            logger.warning("spine itemref with missing or empty idref")
            continue
        item_id = remap_id(id_mapping, declared_id)
        resource = resources.get_by_id_or_href(item_id)
        if resource is None:
            logger.warning("spine itemref idref={} not found in manifest", item_id)
            continue
        linear = xq.attribute(itemref, "linear").lower() != LINEAR_NO
        spine.add_reference(SpineReference(resource, linear=linear))
    return spine


def generate_spine(resources: ResourceIndex) -> Spine:
    """没有 spine 元素时，按 href（忽略大小写）排序收集全部 XHTML 资源。

    第一个遇到的 NCX 资源作为目录文件，之后的 NCX 不再覆盖。
    """
    spine = Spine()
    for href in sorted(resources.all_hrefs(), key=lambda h: (h.lower(), h)):
        resource = resources.get_by_href(href)
        if resource.media_type == mediatype.NCX:
            if spine.toc_resource is None:
                spine.toc_resource = resource
        elif resource.media_type == mediatype.XHTML:
            spine.add_resource(resource)
    logger.debug("generated spine with {} items", len(spine))
    return spine


def find_toc_resource(
    toc_id: str,
    resources: ResourceIndex,
    config: ReaderConfig | None = None,
) -> Resource | None:
    """按以下顺序查找目录文件，第一个命中者胜出：

    1. spine 的 toc 属性声明的 id
    2. properties 含 nav 的第一个资源（EPUB3 导航文档）
    3. 常见 id：toc / ncx / ncxtoc 及其大写形式（按 id 或 href）
    """
    config = config or ReaderConfig()

    if toc_id.strip():
        resource = resources.get_by_id(toc_id)
        if resource is not None:
            return resource
        logger.debug("spine toc id={} not found, trying fallbacks", toc_id)

    resource = resources.find_first_by_property(config.nav_property)
    if resource is not None:
        return resource

    for candidate in config.effective_toc_ids():
        resource = resources.get_by_id_or_href(candidate)
        if resource is not None:
            return resource

    logger.warning(
        "could not find table of contents resource, tried id={!r}, property={!r} and ids {}",
        toc_id, config.nav_property, config.effective_toc_ids(),
    )
    return None


# ── cover ───────────────────────────────────────────────────────────────────


def find_cover_hrefs(package_root: etree._Element, config: ReaderConfig | None = None) -> list[str]:
    """收集所有与封面相关的 href，顺序为：metadata → guide → EPUB3 properties。"""
    config = config or ReaderConfig()
    hrefs: list[str] = []

    # <meta name="cover" content="cover-id"/>，content 找不到对应 item 时按 href 处理
    cover_id = xq.find_attribute_value(package_root, "meta", "name", "cover", "content")
    if cover_id.strip():
        cover_href = xq.find_attribute_value(package_root, "item", "id", cover_id, "href")
        hrefs.append(cover_href if cover_href.strip() else cover_id)

    # <reference type="cover" href="..."/>
    for ref_el in xq.descendants(package_root, "reference"):
        if xq.attribute(ref_el, "type").lower() == GUIDE_COVER:
            cover_href = xq.attribute(ref_el, "href")
            if cover_href.strip():
                hrefs.append(cover_href)
            break

    # EPUB3: <item properties="cover-image" href="..."/>
    cover_href = xq.find_attribute_value(
        package_root, "item", "properties", config.cover_image_property, "href", token=True,
    )
    if cover_href.strip():
        hrefs.append(cover_href)

    return list(dict.fromkeys(hrefs))


def read_cover(
    package_root: etree._Element,
    package_path: str,
    resources: ResourceIndex,
    config: ReaderConfig | None = None,
) -> tuple[Resource | None, Resource | None]:
    """返回 (cover_page, cover_image)，多个候选命中时后者覆盖前者。"""
    cover_page: Resource | None = None
    cover_image: Resource | None = None
    for cover_href in find_cover_hrefs(package_root, config):
        href = paths.strip_fragment(paths.resolve(package_path, paths.decode_href(cover_href)))
        resource = resources.get_by_href(href)
        if resource is None:
            logger.warning("cover resource {} not found", cover_href)
            continue
        if resource.media_type == mediatype.XHTML:
            cover_page = resource
        elif mediatype.is_bitmap_image(resource.media_type):
            cover_image = resource
        else:
            logger.debug("cover candidate {} has unsupported media type {}", href, resource.media_type)
    return cover_page, cover_image
