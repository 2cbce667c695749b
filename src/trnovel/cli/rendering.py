"""Output rendering for the trnovel CLI."""

from typing import Sequence

from ..book_source import BookSource
from ..interfaces import BookInfo, BookListItem, Chapter, ExploreItem, NovelChapter


def _truncate(text: str, max_len: int = 40) -> str:
    text = " ".join(text.split())
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def render_sources(sources: Sequence[BookSource]) -> str:
    if not sources:
        return "No book sources found."
    lines = [f"{len(sources)} book source(s)"]
    for index, source in enumerate(sources):
        group = f" [{source.book_source_group}]" if source.book_source_group else ""
        lines.append(f"  {index:>3}  {source.book_source_name}{group}  {source.book_source_url}")
    return "\n".join(lines)


def render_book_list(items: Sequence[BookListItem]) -> str:
    if not items:
        return "No books found."
    lines = []
    for index, item in enumerate(items):
        info = item.book_info
        author = f" / {info.author}" if info.author else ""
        lines.append(f"  {index:>3}  {info.name}{author}")
        if info.last_chapter:
            lines.append(f"       latest: {_truncate(info.last_chapter)}")
        lines.append(f"       {item.book_url}")
    return "\n".join(lines)


def render_explores(items: Sequence[ExploreItem]) -> str:
    if not items:
        return "No explore categories."
    return "\n".join(f"  {index:>3}  {item.title}  {item.url}" for index, item in enumerate(items))


def render_book_info(info: BookInfo) -> str:
    lines = [info.name]
    if info.author:
        lines.append(f"  author: {info.author}")
    if info.kind:
        lines.append(f"  kind: {_truncate(info.kind)}")
    if info.word_count:
        lines.append(f"  words: {info.word_count}")
    if info.last_chapter:
        lines.append(f"  latest: {_truncate(info.last_chapter)}")
    if info.intro:
        lines.append(f"  intro: {_truncate(info.intro, 80)}")
    return "\n".join(lines)


def render_chapters(chapters: Sequence[Chapter] | Sequence[NovelChapter]) -> str:
    if not chapters:
        return "No chapters found."
    lines = []
    for index, chapter in enumerate(chapters):
        name = chapter.title if isinstance(chapter, NovelChapter) else chapter.chapter_name
        lines.append(f"  {index:>4}  {name}")
    return "\n".join(lines)


def render_download_progress(chapter: Chapter, done: int, total: int) -> str:
    return f"[{done}/{total}] {chapter.chapter_name}"


def render_position(index: int, total: int, text: str | None) -> str:
    if text is None:
        return f"[{index}/{total}] done"
    return f"[{index + 1}/{total}] {_truncate(text, 60)}"
