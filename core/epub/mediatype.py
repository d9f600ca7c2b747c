"""EPUB 内资源的媒体类型常量与查找。"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class MediaType:
    name: str
    default_extension: str
    extensions: tuple[str, ...] = field(default=())

    def __str__(self) -> str:
        return self.name


XHTML = MediaType("application/xhtml+xml", ".xhtml", (".htm", ".html", ".xhtml"))
EPUB = MediaType("application/epub+zip", ".epub", (".epub",))
NCX = MediaType("application/x-dtbncx+xml", ".ncx", (".ncx",))
OPF = MediaType("application/oebps-package+xml", ".opf", (".opf",))
JAVASCRIPT = MediaType("text/javascript", ".js", (".js",))
CSS = MediaType("text/css", ".css", (".css",))

# 图片
JPG = MediaType("image/jpeg", ".jpg", (".jpg", ".jpeg"))
PNG = MediaType("image/png", ".png", (".png",))
GIF = MediaType("image/gif", ".gif", (".gif",))
WEBP = MediaType("image/webp", ".webp", (".webp",))
SVG = MediaType("image/svg+xml", ".svg", (".svg",))

# 字体
TTF = MediaType("application/x-truetype-font", ".ttf", (".ttf",))
OPENTYPE = MediaType("application/vnd.ms-opentype", ".otf", (".otf",))
WOFF = MediaType("application/font-woff", ".woff", (".woff",))

# 音视频与其他
MP3 = MediaType("audio/mpeg", ".mp3", (".mp3",))
MP4 = MediaType("video/mp4", ".mp4", (".mp4",))
OGG = MediaType("audio/ogg", ".ogg", (".ogg",))
SMIL = MediaType("application/smil+xml", ".smil", (".smil",))
PLS = MediaType("application/pls+xml", ".pls", (".pls",))

MEDIA_TYPES: tuple[MediaType, ...] = (
    XHTML, EPUB, NCX, OPF, JAVASCRIPT, CSS,
    JPG, PNG, GIF, WEBP, SVG,
    TTF, OPENTYPE, WOFF,
    MP3, MP4, OGG, SMIL, PLS,
)

BITMAP_IMAGES = frozenset({JPG, PNG, GIF, WEBP})

_BY_NAME: dict[str, MediaType] = {mt.name: mt for mt in MEDIA_TYPES}
# 常见别名
_BY_NAME.update({
    "text/html": XHTML,
    "image/jpg": JPG,
    "application/javascript": JAVASCRIPT,
    "application/x-font-ttf": TTF,
    "font/ttf": TTF,
    "font/otf": OPENTYPE,
    "application/font-sfnt": OPENTYPE,
    "font/woff": WOFF,
})

_BY_EXTENSION: dict[str, MediaType] = {
    ext: mt for mt in MEDIA_TYPES for ext in mt.extensions
}


def get_media_type_by_name(name: str | None) -> MediaType | None:
    if not name:
        return None
    return _BY_NAME.get(name.strip().lower())


def determine_media_type(filename: str) -> MediaType | None:
    """按扩展名猜测媒体类型，未知扩展名返回 None。"""
    _, dot, ext = filename.rpartition(".")
    if not dot:
        return None
    return _BY_EXTENSION.get(f".{ext.lower()}")


def is_bitmap_image(media_type: MediaType | None) -> bool:
    return media_type in BITMAP_IMAGES
