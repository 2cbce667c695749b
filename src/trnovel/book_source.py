"""Book-source documents: catalog endpoints plus the rules used to scrape them."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import json
import logging
from pathlib import Path
from typing import Any, Mapping

import httpx

from .errors import DecodeError, HttpError

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimit:
    max_count: int
    fill_duration: float


@dataclass(frozen=True)
class HttpConfig:
    timeout: int | None = None
    header: dict[str, str] | None = None
    rate_limit: RateLimit | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "HttpConfig":
        if not data:
            return cls()
        rate_limit = None
        raw_limit = data.get("rateLimit")
        if raw_limit is not None:
            rate_limit = RateLimit(
                max_count=int(_require(raw_limit, "maxCount")),
                fill_duration=float(_require(raw_limit, "fillDuration")),
            )
        return cls(
            timeout=_optional_int(data.get("timeout")),
            header=_string_map(data.get("header")),
            rate_limit=rate_limit,
        )


@dataclass(frozen=True)
class RuleBookInfo:
    name: str
    author: str
    cover_url: str = ""
    intro: str = ""
    kind: str = ""
    last_chapter: str = ""
    toc_url: str = ""
    word_count: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RuleBookInfo":
        return cls(
            name=_require_str(data, "name"),
            author=_require_str(data, "author"),
            cover_url=_optional_str(data, "coverUrl"),
            intro=_optional_str(data, "intro"),
            kind=_optional_str(data, "kind"),
            last_chapter=_optional_str(data, "lastChapter"),
            toc_url=_optional_str(data, "tocUrl"),
            word_count=_optional_str(data, "wordCount"),
        )


@dataclass(frozen=True)
class RuleSearch:
    """Rules for a search or explore result page; item fields reuse `RuleBookInfo`."""

    book_list: str
    book_url: str
    book_info: RuleBookInfo

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RuleSearch":
        return cls(
            book_list=_require_str(data, "bookList"),
            book_url=_require_str(data, "bookUrl"),
            book_info=RuleBookInfo.from_dict(data),
        )


@dataclass(frozen=True)
class RuleExploreItem:
    title: str
    url: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RuleExploreItem":
        return cls(title=_require_str(data, "title"), url=_require_str(data, "url"))


@dataclass(frozen=True)
class RuleToc:
    chapter_list: str
    chapter_name: str
    chapter_url: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RuleToc":
        return cls(
            chapter_list=_require_str(data, "chapterList"),
            chapter_name=_require_str(data, "chapterName"),
            chapter_url=_require_str(data, "chapterUrl"),
        )


@dataclass(frozen=True)
class RuleContentOne:
    content: str


@dataclass(frozen=True)
class RuleContentMore:
    """Paginated chapter body.

    ``start`` is the first page index handed to ``next_content_url`` as
    ``{{index}}``; ``end`` is a rule that yields the last page index.
    """

    content: str
    next_content_url: str
    start: int
    end: str


RuleContent = RuleContentOne | RuleContentMore


def rule_content_from_dict(data: Mapping[str, Any]) -> RuleContent:
    if all(key in data for key in ("nextContentUrl", "start", "end")):
        return RuleContentMore(
            content=_require_str(data, "content"),
            next_content_url=_require_str(data, "nextContentUrl"),
            start=int(data["start"]),
            end=_require_str(data, "end"),
        )
    return RuleContentOne(content=_require_str(data, "content"))


@dataclass(frozen=True)
class BookSource:
    book_source_group: str
    book_source_name: str
    book_source_url: str
    last_update_time: int
    search_url: str
    rule_book_info: RuleBookInfo
    rule_content: RuleContent
    rule_search: RuleSearch
    rule_toc: RuleToc
    explore_url: str | None = None
    rule_explore_item: RuleExploreItem | None = None
    rule_explore: RuleSearch | None = None
    header: str | None = None
    respond_time: int | None = None
    http_config: HttpConfig = field(default_factory=HttpConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BookSource":
        if not isinstance(data, Mapping):
            raise DecodeError(f"Book source must be a JSON object, got {type(data).__name__}")
        try:
            explore_item = data.get("ruleExploreItem")
            explore = data.get("ruleExplore")
            return cls(
                book_source_group=_require_str(data, "bookSourceGroup"),
                book_source_name=_require_str(data, "bookSourceName"),
                book_source_url=_require_str(data, "bookSourceUrl"),
                last_update_time=int(_require(data, "lastUpdateTime")),
                search_url=_require_str(data, "searchUrl"),
                rule_book_info=RuleBookInfo.from_dict(_require(data, "ruleBookInfo")),
                rule_content=rule_content_from_dict(_require(data, "ruleContent")),
                rule_search=RuleSearch.from_dict(_require(data, "ruleSearch")),
                rule_toc=RuleToc.from_dict(_require(data, "ruleToc")),
                explore_url=_optional_str(data, "exploreUrl") or None,
                rule_explore_item=RuleExploreItem.from_dict(explore_item) if explore_item else None,
                rule_explore=RuleSearch.from_dict(explore) if explore else None,
                header=_optional_str(data, "header") or None,
                respond_time=_optional_int(data.get("respondTime")),
                http_config=HttpConfig.from_dict(data.get("httpConfig")),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise DecodeError(f"Invalid book source: {exc}") from exc

    @classmethod
    def from_path(cls, path: Path) -> list["BookSource"]:
        try:
            value = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise DecodeError(f"Invalid book source file {path}: {exc}") from exc
        return load_book_sources(value)

    @classmethod
    async def from_url(cls, url: str, *, timeout: float = 30.0) -> list["BookSource"]:
        try:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            raise HttpError(url, cause=exc) from exc
        if response.is_error:
            raise HttpError(url, status=response.status_code)
        try:
            value = response.json()
        except json.JSONDecodeError as exc:
            raise DecodeError(f"Invalid book source document at {url}: {exc}") from exc
        return load_book_sources(value)

    def effective_http_config(self) -> HttpConfig:
        """HTTP settings with the legacy ``header`` and ``respondTime`` fields applied."""
        config = self.http_config
        if self.header:
            try:
                header = json.loads(self.header)
            except (json.JSONDecodeError, TypeError) as exc:
                raise DecodeError(f"Invalid header JSON in {self.book_source_name!r}: {exc}") from exc
            config = replace(config, header=_string_map(header))
        if self.respond_time is not None:
            config = replace(config, timeout=self.respond_time)
        return config


def load_book_sources(value: Any) -> list[BookSource]:
    """Build sources from a decoded JSON object or array.

    A single object must be valid; malformed entries of an array are skipped.
    """
    if isinstance(value, Mapping):
        return [BookSource.from_dict(value)]
    if isinstance(value, list):
        sources: list[BookSource] = []
        for index, item in enumerate(value):
            try:
                sources.append(BookSource.from_dict(item))
            except DecodeError as exc:
                _LOGGER.warning("Skipping book source #%d: %s", index, exc)
        return sources
    raise DecodeError("Book source document must be a JSON object or array")


def _require(data: Mapping[str, Any], key: str) -> Any:
    if key not in data or data[key] is None:
        raise KeyError(key)
    return data[key]


def _require_str(data: Mapping[str, Any], key: str) -> str:
    value = _require(data, key)
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string")
    return value


def _optional_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string")
    return value


def _optional_int(value: Any) -> int | None:
    if value is None:
        return None
    return int(value)


def _string_map(value: Any) -> dict[str, str] | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise TypeError("header must be an object")
    return {str(key): str(item) for key, item in value.items()}
