"""Module interfaces and data contracts shared across trnovel."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence, runtime_checkable

import numpy as np


@dataclass(frozen=True)
class TextSegment:
    """A speakable chunk of chapter text.

    ``start`` and ``end`` are byte offsets into the UTF-8 encoding of the
    text the segment was cut from; ``text`` is the trimmed chunk.
    """

    text: str
    start: int
    end: int


@dataclass(frozen=True)
class ExploreItem:
    title: str
    url: str


@dataclass(frozen=True)
class BookInfo:
    name: str
    author: str
    cover_url: str = ""
    intro: str = ""
    kind: str = ""
    last_chapter: str = ""
    toc_url: str = ""
    word_count: str = ""


@dataclass(frozen=True)
class BookListItem:
    book_url: str
    book_info: BookInfo


@dataclass(frozen=True)
class Chapter:
    chapter_name: str
    chapter_url: str


@dataclass(frozen=True)
class NovelChapter:
    index: int
    title: str


@runtime_checkable
class Analyzer(Protocol):
    def get_string(self, rule: str) -> str:  # pragma: no cover - interface
        ...

    def get_elements(self, rule: str) -> list[str]:  # pragma: no cover - interface
        ...


@runtime_checkable
class TextSegmenter(Protocol):
    def segment(self, text: str) -> Sequence[TextSegment]:  # pragma: no cover - interface
        ...


@runtime_checkable
class Synthesizer(Protocol):
    sample_rate: int

    async def synth(
        self, text: str, voice: str | None
    ) -> tuple[np.ndarray, float]:  # pragma: no cover - interface
        ...


@runtime_checkable
class LocalNovel(Protocol):
    title: str

    @property
    def chapters(self) -> Sequence[NovelChapter]:  # pragma: no cover - interface
        ...

    def chapter_text(self, index: int) -> str:  # pragma: no cover - interface
        ...
