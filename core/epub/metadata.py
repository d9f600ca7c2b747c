"""OPF metadata 中的书目信息（dc:* 与 <meta name content>）。"""

from __future__ import annotations

from lxml import etree

from core.epub import xmlquery as xq
from core.epub.model import Metadata

# dc 元素本地名 -> Metadata 字段
_DC_FIELDS = {
    "title": "titles",
    "creator": "creators",
    "language": "languages",
    "identifier": "identifiers",
    "publisher": "publishers",
    "date": "dates",
    "description": "descriptions",
    "subject": "subjects",
}


def read_metadata(package_root: etree._Element) -> Metadata:
    metadata = Metadata()
    metadata_el = xq.first_child(package_root, "metadata")
    if metadata_el is None:
        return metadata

    for el in metadata_el.iter():
        name = xq.local_name(el)
        if name in _DC_FIELDS:
            text = xq.text_content(el)
            if text:
                getattr(metadata, _DC_FIELDS[name]).append(text)
        elif name == "meta":
            meta_name = xq.attribute(el, "name")
            if meta_name and meta_name not in metadata.meta:
                metadata.meta[meta_name] = xq.attribute(el, "content")
    return metadata
