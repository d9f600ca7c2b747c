"""Book 聚合及其组成部分：Guide、Spine、目录树、元数据。

这里只有数据结构与查询，不含任何 XML 解析逻辑。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from core.epub.paths import FRAGMENT_SEPARATOR
from core.epub.resources import Resource, ResourceIndex

GUIDE_COVER = "cover"


@dataclass
class GuideReference:
    resource: Resource
    type: str                  # cover / toc / text / ...
    title: str = ""
    fragment_id: str = ""

    @property
    def complete_href(self) -> str:
        return _complete_href(self.resource, self.fragment_id)


@dataclass
class Guide:
    references: list[GuideReference] = field(default_factory=list)

    def add_reference(self, reference: GuideReference) -> GuideReference:
        self.references.append(reference)
        return reference

    def get_references_by_type(self, type: str) -> list[GuideReference]:
        type = type.lower()
        return [r for r in self.references if r.type.lower() == type]

    def __len__(self) -> int:
        return len(self.references)


@dataclass
class SpineReference:
    resource: Resource
    linear: bool = True


@dataclass
class Spine:
    references: list[SpineReference] = field(default_factory=list)
    toc_resource: Resource | None = None

    def add_reference(self, reference: SpineReference) -> SpineReference:
        self.references.append(reference)
        return reference

    def add_resource(self, resource: Resource) -> SpineReference:
        return self.add_reference(SpineReference(resource))

    def size(self) -> int:
        return len(self.references)

    def is_empty(self) -> bool:
        return not self.references

    def get_resource(self, index: int) -> Resource | None:
        if 0 <= index < len(self.references):
            return self.references[index].resource
        return None

    def find_first_resource_by_id(self, id: str) -> Resource | None:
        for ref in self.references:
            if ref.resource.id == id:
                return ref.resource
        return None

    def get_resource_index(self, target: Resource | str) -> int:
        """按资源对象或 href 查找在阅读顺序中的下标，未找到返回 -1。"""
        for i, ref in enumerate(self.references):
            if ref.resource is target or ref.resource.href == target:
                return i
        return -1

    def __len__(self) -> int:
        return len(self.references)

    def __iter__(self) -> Iterator[SpineReference]:
        return iter(self.references)


@dataclass
class TOCReference:
    title: str
    resource: Resource | None = None    # 无法解析时为 None，标题仍保留
    fragment_id: str = ""
    children: list[TOCReference] = field(default_factory=list)

    @property
    def complete_href(self) -> str:
        return _complete_href(self.resource, self.fragment_id)

    def add_child(self, child: TOCReference) -> TOCReference:
        self.children.append(child)
        return child


@dataclass
class TableOfContents:
    references: list[TOCReference] = field(default_factory=list)

    def walk(self) -> Iterator[tuple[int, TOCReference]]:
        """按文档顺序（先序）遍历整棵树，产出 (深度, 节点)，顶层深度为 0。"""
        stack = [(0, ref) for ref in reversed(self.references)]
        while stack:
            depth, ref = stack.pop()
            yield depth, ref
            stack.extend((depth + 1, child) for child in reversed(ref.children))

    def size(self) -> int:
        return sum(1 for _ in self.walk())

    def calculate_depth(self) -> int:
        return max((depth + 1 for depth, _ in self.walk()), default=0)

    def all_unique_resources(self) -> list[Resource]:
        seen: dict[str, Resource] = {}
        for _, ref in self.walk():
            if ref.resource is not None and ref.resource.href not in seen:
                seen[ref.resource.href] = ref.resource
        return list(seen.values())

    def __len__(self) -> int:
        return len(self.references)


@dataclass
class Metadata:
    titles: list[str] = field(default_factory=list)
    creators: list[str] = field(default_factory=list)
    languages: list[str] = field(default_factory=list)
    identifiers: list[str] = field(default_factory=list)
    publishers: list[str] = field(default_factory=list)
    dates: list[str] = field(default_factory=list)
    descriptions: list[str] = field(default_factory=list)
    subjects: list[str] = field(default_factory=list)
    meta: dict[str, str] = field(default_factory=dict)   # <meta name= content=>

    @property
    def first_title(self) -> str:
        return self.titles[0] if self.titles else ""


@dataclass
class Book:
    resources: ResourceIndex = field(default_factory=ResourceIndex)
    guide: Guide = field(default_factory=Guide)
    spine: Spine = field(default_factory=Spine)
    table_of_contents: TableOfContents = field(default_factory=TableOfContents)
    metadata: Metadata = field(default_factory=Metadata)
    # 以下均为对 resources 中资源的引用，不单独持有
    opf_resource: Resource | None = None
    ncx_resource: Resource | None = None
    _cover_page: Resource | None = field(default=None, repr=False)
    _cover_image: Resource | None = field(default=None, repr=False)

    def add_resource(self, resource: Resource) -> Resource:
        return self.resources.add(resource)

    @property
    def cover_page(self) -> Resource | None:
        return self._cover_page

    @cover_page.setter
    def cover_page(self, resource: Resource | None) -> None:
        self._cover_page = self._ensure_listed(resource)

    @property
    def cover_image(self) -> Resource | None:
        return self._cover_image

    @cover_image.setter
    def cover_image(self, resource: Resource | None) -> None:
        self._cover_image = self._ensure_listed(resource)

    @property
    def title(self) -> str:
        return self.metadata.first_title

    def _ensure_listed(self, resource: Resource | None) -> Resource | None:
        if resource is not None and resource not in self.resources:
            self.resources.add(resource)
        return resource


def _complete_href(resource: Resource | None, fragment_id: str) -> str:
    if resource is None:
        return ""
    if fragment_id:
        return f"{resource.href}{FRAGMENT_SEPARATOR}{fragment_id}"
    return resource.href
