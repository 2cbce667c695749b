"""Turn a book source into search results, book details, tables of contents and chapter text."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, TypeVar

from .analyzer_manager import AnalyzerManager
from .book_source import (
    BookSource,
    RuleBookInfo,
    RuleContentMore,
    RuleContentOne,
    RuleExploreItem,
    RuleSearch,
    RuleToc,
)
from .errors import DecodeError, TrnovelError
from .http_client import HttpClient
from .interfaces import BookInfo, BookListItem, Chapter, ExploreItem

_LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")


class BookSourceParser:
    """Drive one book source: fetch pages and apply its rules.

    The parser owns the source's `HttpClient` and a single `AnalyzerManager`,
    so ``@put`` variables survive from one call to the next. The page fetched
    by `get_book_info` is kept so `get_chapters` can reuse it when the book has
    no separate table-of-contents URL.
    """

    def __init__(
        self,
        book_source: BookSource,
        *,
        http_client: HttpClient | None = None,
        analyzer: AnalyzerManager | None = None,
    ) -> None:
        self.book_source = book_source
        self.http_client = http_client or HttpClient(
            book_source.book_source_url, book_source.effective_http_config()
        )
        self.analyzer = analyzer or AnalyzerManager()
        self.temp: str | None = None

    async def aclose(self) -> None:
        await self.http_client.aclose()

    async def __aenter__(self) -> "BookSourceParser":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def get_explores(self) -> list[ExploreItem]:
        explore_url = self.book_source.explore_url
        if not explore_url:
            return []

        rule = self.book_source.rule_explore_item
        if rule is not None:
            page = await self.http_client.get(self.book_source.book_source_url)
            items = self.analyzer.get_elements(explore_url, page)
            return self._parse_items(items, lambda item: self._explore_item(rule, item))

        try:
            raw_items = json.loads(explore_url)
        except (json.JSONDecodeError, TypeError) as exc:
            raise DecodeError(f"exploreUrl is neither a rule nor a JSON list: {exc}") from exc
        try:
            return [ExploreItem(title=str(item["title"]), url=str(item["url"])) for item in raw_items]
        except (KeyError, TypeError) as exc:
            raise DecodeError(f"Invalid explore entry: {exc}") from exc

    async def search_books(self, key: str, page: int = 1, page_size: int = 20) -> list[BookListItem]:
        url = self.analyzer.get_string(
            self.book_source.search_url,
            "",
            {"key": key, "page": page, "page_size": page_size},
        )
        _LOGGER.info("Searching %s for %r", self.book_source.book_source_name, key)
        return await self._book_list(url, self.book_source.rule_search)

    async def explore_books(self, url: str, page: int = 1, page_size: int = 20) -> list[BookListItem]:
        rule = self.book_source.rule_explore
        if rule is None:
            raise TrnovelError(f"Book source {self.book_source.book_source_name!r} has no explore rule")
        url = self.analyzer.get_string(url, "", {"page": page, "page_size": page_size})
        return await self._book_list(url, rule)

    async def get_book_info(self, book_url: str) -> BookInfo:
        page = await self.http_client.get(book_url)
        book_info = self._book_info(self.book_source.rule_book_info, page)
        self.temp = page
        return book_info

    async def get_chapters(self, toc_url: str) -> list[Chapter]:
        if toc_url.startswith("/") or toc_url.startswith("http"):
            page = await self.http_client.get(toc_url)
        elif self.temp is not None:
            page, self.temp = self.temp, None
        else:
            raise TrnovelError("No table-of-contents URL and no book page fetched yet")

        rule = self.book_source.rule_toc
        items = self.analyzer.get_elements(rule.chapter_list, page)
        chapters = self._parse_items(items, lambda item: self._chapter(rule, item))
        _LOGGER.info("Found %d chapters", len(chapters))
        return chapters

    async def get_content(self, chapter_url: str) -> str:
        page = await self.http_client.get(chapter_url)
        rule = self.book_source.rule_content

        if isinstance(rule, RuleContentOne):
            return self.analyzer.get_string(rule.content, page)

        return await self._paged_content(rule, page)

    async def _paged_content(self, rule: RuleContentMore, page: str) -> str:
        raw_end = self.analyzer.get_string(rule.end, page)
        try:
            end = int(raw_end.strip())
        except ValueError as exc:
            raise DecodeError(f"Last page index {raw_end!r} is not an integer") from exc

        contents: list[str] = []
        index = rule.start
        while True:
            contents.append(self.analyzer.get_string(rule.content, page))
            if index > end:
                break
            next_url = self.analyzer.get_string(rule.next_content_url, page, {"index": index})
            page = await self.http_client.get(next_url)
            index += 1
        return "  ".join(contents)

    async def _book_list(self, url: str, rule: RuleSearch) -> list[BookListItem]:
        page = await self.http_client.get(url)
        items = self.analyzer.get_elements(rule.book_list, page)
        return self._parse_items(items, lambda item: self._book_list_item(rule, item))

    def _parse_items(self, items: list[str], parse: Callable[[str], _T]) -> list[_T]:
        results: list[_T] = []
        for index, item in enumerate(items):
            try:
                results.append(parse(item))
            except TrnovelError as exc:
                _LOGGER.warning("Skipping list item #%d: %s", index, exc)
        return results

    def _explore_item(self, rule: RuleExploreItem, content: str) -> ExploreItem:
        return ExploreItem(
            title=self.analyzer.get_string(rule.title, content),
            url=self.analyzer.get_string(rule.url, content),
        )

    def _book_list_item(self, rule: RuleSearch, content: str) -> BookListItem:
        book_url = self.analyzer.get_string(rule.book_url, content)
        return BookListItem(
            book_url=self.http_client.url_with_base(book_url),
            book_info=self._book_info(rule.book_info, content),
        )

    def _book_info(self, rule: RuleBookInfo, content: str) -> BookInfo:
        values: dict[str, Any] = {
            name: self.analyzer.get_string(getattr(rule, name), content)
            for name in (
                "name",
                "author",
                "cover_url",
                "intro",
                "kind",
                "last_chapter",
                "toc_url",
                "word_count",
            )
        }
        if values["toc_url"]:
            values["toc_url"] = self.http_client.url_with_base(values["toc_url"])
        return BookInfo(**values)

    def _chapter(self, rule: RuleToc, content: str) -> Chapter:
        chapter_url = self.analyzer.get_string(rule.chapter_url, content)
        return Chapter(
            chapter_name=self.analyzer.get_string(rule.chapter_name, content),
            chapter_url=self.http_client.url_with_base(chapter_url),
        )
