"""Tests for local_novel module."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from unittest.mock import patch

import pytest
from ebooklib import ITEM_DOCUMENT, ITEM_IMAGE

from trnovel.errors import DecodeError
from trnovel.local_novel import (
    EpubNovel,
    TxtNovel,
    _normalize_href,
    open_novel,
)

NOVEL = "序言\n第一章 开端\n正文一。\n第二章 转折\n正文二。\n"


def test_txt_chapters_follow_headings(tmp_path: Path) -> None:
    path = tmp_path / "遮天.txt"
    path.write_text(NOVEL, encoding="utf-8")
    novel = TxtNovel.open(path)

    assert novel.title == "遮天"
    assert novel.encoding == "utf-8"
    assert [(chapter.index, chapter.title) for chapter in novel.chapters] == [
        (0, "第一章 开端"),
        (1, "第二章 转折"),
    ]
    assert novel.chapter_text(0) == "序言\n第一章 开端\n正文一。\n"
    assert novel.chapter_text(1) == "第二章 转折\n正文二。\n"
    with pytest.raises(IndexError):
        novel.chapter_text(2)


def test_txt_falls_back_to_gbk(tmp_path: Path) -> None:
    path = tmp_path / "book.txt"
    path.write_bytes(NOVEL.encode("gbk"))
    novel = TxtNovel.open(path)
    assert novel.encoding == "gbk"
    assert novel.chapters[1].title == "第二章 转折"


def test_txt_without_headings_is_one_chapter(tmp_path: Path) -> None:
    path = tmp_path / "notes.txt"
    path.write_text("\n  随笔\n一些文字\n", encoding="utf-8")
    novel = TxtNovel.open(path)
    assert [chapter.title for chapter in novel.chapters] == ["随笔"]
    assert novel.chapter_text(0) == "\n  随笔\n一些文字\n"


def test_txt_undecodable_raises(tmp_path: Path) -> None:
    path = tmp_path / "bad.txt"
    path.write_bytes(b"\xff\xfe\xfa\x80")
    with pytest.raises(DecodeError):
        TxtNovel.open(path)


def test_open_novel_dispatches_on_suffix(tmp_path: Path) -> None:
    path = tmp_path / "book.txt"
    path.write_text(NOVEL, encoding="utf-8")
    assert isinstance(open_novel(path), TxtNovel)
    with pytest.raises(DecodeError):
        open_novel(tmp_path / "book.pdf")


@dataclass
class FakeItem:
    name: str
    content: bytes
    item_type: int = ITEM_DOCUMENT

    def get_type(self) -> int:
        return self.item_type

    def get_name(self) -> str:
        return self.name

    def get_content(self) -> bytes:
        return self.content


@dataclass
class FakeLink:
    title: str
    href: str


@dataclass
class FakeBook:
    title: str | None
    items: dict[str, FakeItem]
    spine: list[tuple[str, str]]
    toc: list = field(default_factory=list)

    def get_metadata(self, namespace: str, name: str):
        if name == "title" and self.title:
            return [(self.title, {})]
        return []

    def get_item_with_id(self, item_id: str):
        return self.items.get(item_id)


def _fake_book() -> FakeBook:
    items = {
        "cover": FakeItem("Text/cover.xhtml", b"<html><body><img src='c.jpg'/></body></html>"),
        "c1": FakeItem(
            "Text/c1.xhtml",
            "<html><head><title>一</title></head><body><h1>第一章</h1><p>正文一。</p></body></html>".encode(),
        ),
        "c2": FakeItem(
            "Text/c2.xhtml",
            "<html><head><title>二</title></head><body><p>正文二。</p><script>x()</script></body></html>".encode(),
        ),
        "c3": FakeItem("Text/c3.xhtml", "<html><body><p>后记</p></body></html>".encode()),
        "img": FakeItem("Images/c.jpg", b"\xff\xd8", ITEM_IMAGE),
    }
    return FakeBook(
        title="遮天",
        items=items,
        spine=[("cover", "yes"), ("c1", "yes"), ("img", "yes"), ("c2", "yes"), ("c3", "yes")],
        toc=[FakeLink("第一章 开端", "Text/c1.xhtml#top")],
    )


def test_epub_chapters_in_spine_order() -> None:
    with patch("trnovel.local_novel.epub.read_epub", return_value=_fake_book()):
        novel = EpubNovel.open(Path("book.epub"))

    assert novel.title == "遮天"
    assert [chapter.title for chapter in novel.chapters] == ["第一章 开端", "二", "Section 3"]
    assert novel.chapter_text(0) == "第一章\n正文一。"
    assert novel.chapter_text(1) == "正文二。"
    with pytest.raises(IndexError):
        novel.chapter_text(3)


def test_epub_read_failure_raises_decode_error() -> None:
    with patch("trnovel.local_novel.epub.read_epub", side_effect=OSError("corrupt")):
        with pytest.raises(DecodeError):
            open_novel(Path("book.epub"))


def test_normalize_href() -> None:
    assert _normalize_href("./Text/c1.xhtml#frag") == "Text/c1.xhtml"
    assert _normalize_href("/Text/%E7%AB%A0.xhtml") == "Text/章.xhtml"
    assert _normalize_href("#only") == ""
    assert _normalize_href(None) == ""
