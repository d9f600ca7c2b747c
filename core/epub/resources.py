"""EPUB 资源与资源索引。

Resource 在读取 ZIP 条目时创建（此时只有 href 与内容），
随后由 package 读取阶段一次性补上 id、媒体类型和 properties。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from core.epub.mediatype import MediaType, determine_media_type
from core.epub.paths import strip_fragment


@dataclass(eq=False)
class Resource:
    href: str                          # ZIP 内路径
    data: bytes = field(default=b"", repr=False)
    id: str | None = None
    media_type: MediaType | None = None
    properties: str = ""               # manifest 中的原始 properties，已 trim

    def __post_init__(self) -> None:
        if self.media_type is None:
            self.media_type = determine_media_type(self.href)

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def property_tokens(self) -> tuple[str, ...]:
        return tuple(self.properties.split())

    def has_property(self, token: str) -> bool:
        """任一 property 以 token 开头（忽略大小写）即视为命中。"""
        token = token.lower()
        return any(p.lower().startswith(token) for p in self.property_tokens)


class ResourceIndex:
    """按 href 与 id 两路索引的资源集合，保留插入顺序。

    id 冲突不报错，后写入者覆盖。
    """

    def __init__(self, resources: list[Resource] | None = None) -> None:
        self._by_href: dict[str, Resource] = {}
        self._by_id: dict[str, Resource] = {}
        for resource in resources or ():
            self.add(resource)

    def add(self, resource: Resource) -> Resource:
        # 同一 href 再次写入时，旧对象的 id 索引也要失效
        previous = self._by_href.pop(resource.href, None)
        if previous is not None and previous.id and self._by_id.get(previous.id) is previous:
            del self._by_id[previous.id]
        self._by_href[resource.href] = resource
        if resource.id:
            self._by_id[resource.id] = resource
        return resource

    def remove(self, href: str) -> Resource | None:
        resource = self._by_href.pop(href, None)
        if resource is not None and resource.id and self._by_id.get(resource.id) is resource:
            del self._by_id[resource.id]
        return resource

    def get_by_id(self, id: str | None) -> Resource | None:
        if not id:
            return None
        return self._by_id.get(id)

    def get_by_href(self, href: str | None) -> Resource | None:
        if not href:
            return None
        return self._by_href.get(strip_fragment(href))

    def get_by_id_or_href(self, key: str | None) -> Resource | None:
        """先按 id 查找，再按 href 查找（spine/toc 中常把路径当 id 用）。"""
        return self.get_by_id(key) or self.get_by_href(key)

    def find_first_by_property(self, token: str) -> Resource | None:
        for resource in self._by_href.values():
            if resource.has_property(token):
                return resource
        return None

    def find_all_by_media_type(self, media_type: MediaType) -> list[Resource]:
        return [r for r in self._by_href.values() if r.media_type == media_type]

    def all_hrefs(self) -> list[str]:
        return list(self._by_href)

    def all(self) -> list[Resource]:
        return list(self._by_href.values())

    def contains_href(self, href: str) -> bool:
        return strip_fragment(href) in self._by_href

    def __contains__(self, resource: object) -> bool:
        return isinstance(resource, Resource) and self._by_href.get(resource.href) is resource

    def __iter__(self) -> Iterator[Resource]:
        return iter(list(self._by_href.values()))

    def __len__(self) -> int:
        return len(self._by_href)
