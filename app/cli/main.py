"""epubnav CLI 入口。

命令：
  epubnav info <epub>        书籍概要（OPF、目录文件、封面、数量统计）
  epubnav toc <epub>         目录树
  epubnav spine <epub>       阅读顺序
  epubnav guide <epub>       guide 引用
  epubnav resources <epub>   manifest 资源列表
"""

from __future__ import annotations

from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from core.config import ReaderConfig
from core.epub.errors import ReadingError
from core.epub.model import Book, TOCReference
from core.epub.navigation import is_navigation_document
from core.epub.reader import read_epub

app = typer.Typer(
    name="epubnav",
    help="epubnav: EPUB 结构查看工具（manifest / spine / guide / 目录）",
    add_completion=False,
)
console = Console()

_LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level:<7}</level> | {message}"

# 移除 loguru 默认的 stderr handler，改为通过 Rich Console 输出
logger.remove(0)
_log_handler_id = logger.add(
    lambda msg: console.log(msg, end=""),
    format=_LOG_FORMAT,
    level="WARNING",
    colorize=True,
)

EpubArg = typer.Argument(..., help="输入 EPUB 文件路径", exists=True, dir_okay=False)
LogLevelOpt = typer.Option("WARNING", "--log-level", "-l", help="日志级别：DEBUG / INFO / WARNING / ERROR")
RequireTocOpt = typer.Option(True, "--require-toc/--no-require-toc", help="缺少目录文件时是否报错")


def _setup_logging(level: str) -> None:
    global _log_handler_id
    logger.remove(_log_handler_id)
    _log_handler_id = logger.add(
        lambda msg: console.log(msg, end=""),
        format=_LOG_FORMAT,
        level=level.upper(),
        colorize=True,
    )


def _load(epub: Path, log_level: str, require_toc: bool) -> Book:
    _setup_logging(log_level)
    try:
        return read_epub(epub, ReaderConfig(require_toc=require_toc))
    except ReadingError as e:
        console.print(f"[red]读取失败：{e}[/red]")
        raise typer.Exit(1)


@app.command()
def info(
    epub: Path = EpubArg,
    log_level: str = LogLevelOpt,
    require_toc: bool = RequireTocOpt,
) -> None:
    """显示书籍概要。"""
    book = _load(epub, log_level, require_toc)
    toc_resource = book.spine.toc_resource

    table = Table(title=book.title or epub.name, show_header=False)
    table.add_column("项目", style="cyan")
    table.add_column("值", style="white")
    table.add_row("OPF", book.opf_resource.href if book.opf_resource else "-")
    if toc_resource is not None:
        kind = "nav" if is_navigation_document(toc_resource) else "ncx"
        table.add_row("目录文件", f"{toc_resource.href} ({kind})")
    else:
        table.add_row("目录文件", "-")
    table.add_row("封面页", book.cover_page.href if book.cover_page else "-")
    table.add_row("封面图片", book.cover_image.href if book.cover_image else "-")
    table.add_row("作者", ", ".join(book.metadata.creators) or "-")
    table.add_row("语言", ", ".join(book.metadata.languages) or "-")
    table.add_row("资源数", str(len(book.resources)))
    table.add_row("阅读顺序", str(book.spine.size()))
    table.add_row("guide", str(len(book.guide)))
    table.add_row("目录条目", f"{book.table_of_contents.size()}（深度 {book.table_of_contents.calculate_depth()}）")
    console.print(table)


@app.command()
def toc(
    epub: Path = EpubArg,
    log_level: str = LogLevelOpt,
    require_toc: bool = RequireTocOpt,
) -> None:
    """以树形显示目录。"""
    book = _load(epub, log_level, require_toc)
    tree = Tree(f"[bold]{escape(book.title or epub.name)}[/bold]")
    _add_toc_nodes(tree, book.table_of_contents.references)
    console.print(tree)


@app.command()
def spine(
    epub: Path = EpubArg,
    log_level: str = LogLevelOpt,
    require_toc: bool = RequireTocOpt,
) -> None:
    """显示阅读顺序。"""
    book = _load(epub, log_level, require_toc)
    table = Table(title="spine", show_header=True)
    table.add_column("#", justify="right")
    table.add_column("id", style="cyan")
    table.add_column("href")
    table.add_column("媒体类型")
    table.add_column("linear")
    for i, ref in enumerate(book.spine):
        table.add_row(
            str(i), ref.resource.id or "", ref.resource.href,
            str(ref.resource.media_type or ""), "yes" if ref.linear else "no",
        )
    console.print(table)


@app.command()
def guide(
    epub: Path = EpubArg,
    log_level: str = LogLevelOpt,
    require_toc: bool = RequireTocOpt,
) -> None:
    """显示 guide 引用。"""
    book = _load(epub, log_level, require_toc)
    table = Table(title="guide", show_header=True)
    table.add_column("类型", style="cyan")
    table.add_column("标题")
    table.add_column("href")
    for ref in book.guide.references:
        table.add_row(ref.type, ref.title, ref.complete_href)
    console.print(table)


@app.command()
def resources(
    epub: Path = EpubArg,
    log_level: str = LogLevelOpt,
    require_toc: bool = RequireTocOpt,
) -> None:
    """列出 manifest 中的资源。"""
    book = _load(epub, log_level, require_toc)
    table = Table(title="resources", show_header=True)
    table.add_column("id", style="cyan")
    table.add_column("href")
    table.add_column("媒体类型")
    table.add_column("properties")
    table.add_column("大小", justify="right")
    for resource in book.resources:
        table.add_row(
            resource.id or "", resource.href, str(resource.media_type or ""),
            resource.properties, str(resource.size),
        )
    console.print(table)


def _add_toc_nodes(parent: Tree, references: list[TOCReference]) -> None:
    for ref in references:
        if ref.resource is None:
            label = f"[dim]{escape(ref.title)}[/dim]"
        else:
            label = f"{escape(ref.title)}  [dim]{escape(ref.complete_href)}[/dim]"
        _add_toc_nodes(parent.add(label), ref.children)
