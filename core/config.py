"""全局配置模型。"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ReaderConfig:
    # spine 未声明 toc 时依次尝试的常见 id（原样与大写各试一次）
    toc_ids: tuple[str, ...] = ("toc", "ncx", "ncxtoc")
    nav_property: str = "nav"                  # EPUB3 导航文档的 manifest properties
    cover_image_property: str = "cover-image"  # EPUB3 封面图片的 manifest properties

    # 找不到目录文件时是否直接失败；False 时跳过目录解析
    require_toc: bool = True
    # 是否保留 ZIP 中存在但 manifest 未列出的文件
    keep_unlisted: bool = False

    def effective_toc_ids(self) -> list[str]:
        ids: list[str] = []
        for toc_id in self.toc_ids:
            ids.append(toc_id)
            ids.append(toc_id.upper())
        return ids


@dataclass
class WebConfig:
    max_upload_bytes: int = 100 * 1024 * 1024
    max_books: int = 32            # 内存中最多保留的书籍数，超出时淘汰最早的
    reader: ReaderConfig | None = None

    def effective_reader(self) -> ReaderConfig:
        return self.reader or ReaderConfig()
