"""Local TXT and EPUB novels split into chapters for reading aloud."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
import logging
from pathlib import Path
import posixpath
import re
from urllib.parse import unquote

from bs4 import BeautifulSoup
from ebooklib import ITEM_DOCUMENT, epub

from .errors import DecodeError
from .interfaces import LocalNovel, NovelChapter

_LOGGER = logging.getLogger(__name__)

CHAPTER_RE = re.compile(r"第.+章")
TXT_ENCODINGS = ("utf-8", "gbk")


@dataclass
class TxtNovel:
    """A plain text novel whose chapters start at lines matching ``第…章``.

    The first chapter also carries whatever precedes the first heading. A
    file without any heading is a single chapter named after its first line.
    """

    path: Path
    title: str
    encoding: str
    text: str
    _offsets: list[int] = field(default_factory=list, init=False, repr=False)
    _chapters: list[NovelChapter] = field(default_factory=list, init=False, repr=False)

    @classmethod
    def open(cls, path: Path) -> "TxtNovel":
        raw = path.read_bytes()
        text, encoding = _decode(raw, path)
        novel = cls(path=path, title=path.stem, encoding=encoding, text=text)
        novel._index_chapters()
        return novel

    @property
    def chapters(self) -> list[NovelChapter]:
        return list(self._chapters)

    def chapter_text(self, index: int) -> str:
        if not 0 <= index < len(self._chapters):
            raise IndexError(f"Chapter {index} does not exist")
        start = 0 if index == 0 else self._offsets[index]
        end = self._offsets[index + 1] if index + 1 < len(self._offsets) else len(self.text)
        return self.text[start:end]

    def _index_chapters(self) -> None:
        offset = 0
        first_line = ""
        for line in self.text.splitlines(keepends=True):
            if not first_line and line.strip():
                first_line = line.strip()
            if CHAPTER_RE.search(line):
                self._chapters.append(NovelChapter(len(self._chapters), line.strip()))
                self._offsets.append(offset)
            offset += len(line)

        if not self._chapters:
            self._chapters.append(NovelChapter(0, first_line or self.title))
            self._offsets.append(0)
        _LOGGER.debug("Indexed %d chapter(s) in %s", len(self._chapters), self.path)


@dataclass
class EpubNovel:
    """An EPUB novel read in spine order; empty documents are skipped."""

    path: Path
    title: str
    _chapters: list[NovelChapter] = field(default_factory=list, init=False, repr=False)
    _texts: list[str] = field(default_factory=list, init=False, repr=False)

    @classmethod
    def open(cls, path: Path) -> "EpubNovel":
        try:
            book = epub.read_epub(str(path))
        except Exception as exc:
            raise DecodeError(f"Failed to read EPUB {path}: {exc}") from exc

        novel = cls(path=path, title=_first_metadata(book, "title") or path.stem)
        toc_map = _build_toc_map(book.toc)

        for item_id, _linear in book.spine:
            item = book.get_item_with_id(item_id)
            if item is None or item.get_type() != ITEM_DOCUMENT:
                continue
            html_title, text = _extract_title_and_text(item.get_content())
            if not text:
                _LOGGER.debug("Skipping empty spine document: %s", item_id)
                continue
            index = len(novel._chapters)
            title = (
                toc_map.get(_normalize_href(item.get_name()))
                or html_title
                or f"Section {index + 1}"
            )
            novel._chapters.append(NovelChapter(index, title))
            novel._texts.append(text)
        return novel

    @property
    def chapters(self) -> list[NovelChapter]:
        return list(self._chapters)

    def chapter_text(self, index: int) -> str:
        if not 0 <= index < len(self._texts):
            raise IndexError(f"Chapter {index} does not exist")
        return self._texts[index]


def open_novel(path: Path) -> LocalNovel:
    suffix = path.suffix.lower()
    if suffix == ".epub":
        return EpubNovel.open(path)
    if suffix in {".txt", ""}:
        return TxtNovel.open(path)
    raise DecodeError(f"Unsupported novel format: {path.suffix}")


def _decode(raw: bytes, path: Path) -> tuple[str, str]:
    for encoding in TXT_ENCODINGS:
        try:
            return raw.decode(encoding), encoding
        except UnicodeDecodeError:
            continue
    raise DecodeError(f"Unsupported encoding: {path}")


def _first_metadata(book: epub.EpubBook, name: str) -> str | None:
    values = book.get_metadata("DC", name)
    if not values or values[0][0] is None:
        return None
    return str(values[0][0]).strip() or None


def _build_toc_map(toc: Iterable[object]) -> dict[str, str]:
    toc_map: dict[str, str] = {}
    for title, href in _walk_toc(toc):
        key = _normalize_href(href)
        if key and title and key not in toc_map:
            toc_map[key] = str(title).strip()
    return toc_map


def _walk_toc(items: Iterable[object]) -> Iterable[tuple[str | None, str | None]]:
    for item in items or []:
        if isinstance(item, tuple) and len(item) == 2:
            section, children = item
            yield getattr(section, "title", None), getattr(section, "href", None)
            yield from _walk_toc(children)
            continue
        yield getattr(item, "title", None), getattr(item, "href", None)


def _normalize_href(href: str | None) -> str:
    if not href:
        return ""
    base = unquote(href.split("#", 1)[0]).replace("\\", "/")
    if not base:
        return ""
    base = posixpath.normpath(base)
    while base.startswith("./"):
        base = base[2:]
    return base.lstrip("/")


def _extract_title_and_text(content: bytes | str) -> tuple[str | None, str]:
    soup = BeautifulSoup(content, "html.parser")
    for tag in soup(["script", "style", "noscript", "nav", "svg"]):
        tag.decompose()

    title = None
    if soup.title and soup.title.string:
        title = soup.title.string.strip() or None

    root = soup.body if soup.body else soup
    lines = [line.strip() for line in root.get_text(separator="\n").splitlines()]
    return title, "\n".join(line for line in lines if line)
