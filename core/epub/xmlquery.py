"""与命名空间无关的 XML 结构查询。

OPF、NCX 和 EPUB3 导航文档在实际书籍中命名空间写法五花八门（缺失、前缀不同、
属性带 epub: 前缀等），这里统一按本地名匹配元素和属性，供 package 与
navigation 两个解析器共用。
"""

from __future__ import annotations

from typing import Iterator

from lxml import etree

from core.epub.errors import ReadingError


def parse_xml(data: bytes, what: str = "document") -> etree._Element:
    """解析 XML 字节串，返回根元素；失败时抛出 ReadingError。"""
    parser = etree.XMLParser(resolve_entities=False, no_network=True, recover=False)
    try:
        root = etree.fromstring(data, parser)
    except etree.XMLSyntaxError as e:
        raise ReadingError(f"{what} is not well-formed XML: {e}") from e
    if root is None:
        raise ReadingError(f"{what} is empty")
    return root


def parse_xml_lenient(data: bytes) -> etree._Element | None:
    """宽松解析（容忍常见的 XHTML 瑕疵），完全无法解析时返回 None。"""
    parser = etree.XMLParser(resolve_entities=False, no_network=True, recover=True)
    try:
        return etree.fromstring(data, parser)
    except etree.XMLSyntaxError:
        return None


def local_name(el: etree._Element) -> str:
    """元素本地名；注释、处理指令等非元素节点返回 ""。"""
    if not isinstance(el.tag, str):
        return ""
    return etree.QName(el).localname


def children(el: etree._Element | None, name: str) -> Iterator[etree._Element]:
    """直接子元素中本地名为 name 的元素，按文档顺序。"""
    if el is None:
        return
    for child in el:
        if local_name(child) == name:
            yield child


def first_child(el: etree._Element | None, name: str) -> etree._Element | None:
    return next(children(el, name), None)


def descendants(el: etree._Element | None, name: str) -> Iterator[etree._Element]:
    if el is None:
        return
    for node in el.iter():
        if node is not el and local_name(node) == name:
            yield node


def first_descendant(el: etree._Element | None, name: str) -> etree._Element | None:
    return next(descendants(el, name), None)


def attribute(el: etree._Element | None, name: str) -> str:
    """按本地名取属性值，无命名空间的属性优先；缺失时返回 ""。"""
    if el is None:
        return ""
    value = el.get(name)
    if value is not None:
        return value
    for key, value in el.attrib.items():
        if etree.QName(key).localname == name:
            return value
    return ""


def find_first(
    root: etree._Element | None,
    element_name: str,
    attribute_name: str,
    value: str,
    *,
    token: bool = False,
) -> etree._Element | None:
    """查找第一个本地名为 element_name、且属性 attribute_name 等于 value 的元素。

    token=True 时，属性值按空白拆分后包含 value 即视为匹配（用于 properties、epub:type）。
    """
    for el in descendants(root, element_name):
        actual = attribute(el, attribute_name)
        if token:
            if value in actual.split():
                return el
        elif actual == value:
            return el
    return None


def find_attribute_value(
    root: etree._Element | None,
    element_name: str,
    attribute_name: str,
    value: str,
    result_attribute: str,
    *,
    token: bool = False,
) -> str:
    """find_first 命中元素的 result_attribute 属性值，未命中时返回 ""。"""
    el = find_first(root, element_name, attribute_name, value, token=token)
    return attribute(el, result_attribute)


def text_content(el: etree._Element | None) -> str:
    """元素下全部文本拼接，并压缩空白。"""
    if el is None:
        return ""
    return " ".join(str(el.xpath("string()")).split())
