"""Download a whole network book into one text file, chapter by chapter."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
import re
from typing import Callable, Sequence

from .book_source_parser import BookSourceParser
from .interfaces import BookInfo, Chapter

_LOGGER = logging.getLogger(__name__)

_CHAPTER_HEADING_RE = re.compile(r"第.+章")

ProgressCallback = Callable[[Chapter, int, int], None]


class Downloader:
    """Fetch chapters concurrently and append them to a file in table-of-contents order.

    ``downloaded_chapter`` counts chapters already in the file, so a
    download can pick up where an earlier one stopped.
    """

    def __init__(
        self,
        parser: BookSourceParser,
        book_info: BookInfo,
        downloaded_chapter: int = 0,
        *,
        concurrency: int = 4,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.parser = parser
        self.book_info = book_info
        self.downloaded_chapter = downloaded_chapter
        self.concurrency = concurrency
        self._tasks: list[asyncio.Task[str]] = []
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        for task in self._tasks:
            task.cancel()

    async def download(self, path: Path, on_progress: ProgressCallback | None = None) -> int:
        chapters = await self.parser.get_chapters(self.book_info.toc_url)
        return await self.download_chapters(path, chapters, on_progress)

    async def download_chapters(
        self,
        path: Path,
        chapters: Sequence[Chapter],
        on_progress: ProgressCallback | None = None,
    ) -> int:
        """Append the remaining chapters to ``path``; return the downloaded count."""
        self._cancelled = False
        total = len(chapters)
        pending = list(chapters[self.downloaded_chapter :])
        semaphore = asyncio.Semaphore(self.concurrency)

        async def fetch(chapter: Chapter) -> str:
            async with semaphore:
                return await self.parser.get_content(chapter.chapter_url)

        self._tasks = [asyncio.create_task(fetch(chapter)) for chapter in pending]
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            for chapter, task in zip(pending, self._tasks):
                content = await task
                self.downloaded_chapter += 1
                if on_progress is not None:
                    on_progress(chapter, self.downloaded_chapter, total)
                _append_chapter(path, chapter, content)
        except asyncio.CancelledError:
            if not self._cancelled:
                raise
            _LOGGER.info(
                "Download of %s cancelled after %d/%d chapters",
                self.book_info.name,
                self.downloaded_chapter,
                total,
            )
        finally:
            for task in self._tasks:
                task.cancel()
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self._tasks = []
        return self.downloaded_chapter


def _append_chapter(path: Path, chapter: Chapter, content: str) -> None:
    with path.open("a", encoding="utf-8") as handle:
        if not _CHAPTER_HEADING_RE.search(content):
            handle.write(f"\n\n{chapter.chapter_name}\n\n")
        handle.write(content)
