from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from trnovel.book_source import (
    BookSource,
    HttpConfig,
    RateLimit,
    RuleContentMore,
    RuleContentOne,
    load_book_sources,
)
from trnovel.errors import DecodeError, HttpError


def _source_dict(**overrides) -> dict:
    data = {
        "bookSourceGroup": "网文",
        "bookSourceName": "示例书源",
        "bookSourceUrl": "https://books.example.com",
        "lastUpdateTime": 1700000000,
        "searchUrl": "/search?q={{key}}&page={{page}}",
        "ruleSearch": {
            "bookList": "@css:ul.result li",
            "bookUrl": "@css:a@href",
            "name": "@css:a@text",
            "author": "@css:.author@text",
        },
        "ruleBookInfo": {
            "name": "@css:h1@text",
            "author": "@css:.author@text",
            "intro": "@css:.intro@text",
            "tocUrl": "@css:a.toc@href",
        },
        "ruleToc": {
            "chapterList": "@css:ul.chapters li",
            "chapterName": "@css:a@text",
            "chapterUrl": "@css:a@href",
        },
        "ruleContent": {"content": "@css:#content@textNodes"},
    }
    data.update(overrides)
    return data


def test_from_dict_reads_rules() -> None:
    source = BookSource.from_dict(_source_dict())
    assert source.book_source_name == "示例书源"
    assert source.rule_search.book_list == "@css:ul.result li"
    assert source.rule_search.book_info.author == "@css:.author@text"
    assert source.rule_book_info.toc_url == "@css:a.toc@href"
    assert source.rule_book_info.cover_url == ""
    assert isinstance(source.rule_content, RuleContentOne)
    assert source.explore_url is None
    assert source.rule_explore is None
    assert source.http_config == HttpConfig()


def test_paginated_content_rule() -> None:
    source = BookSource.from_dict(
        _source_dict(
            ruleContent={
                "content": "@css:#content@text",
                "nextContentUrl": "/c/1_{{index}}.html",
                "start": 2,
                "end": "@css:#pages@text",
            }
        )
    )
    assert source.rule_content == RuleContentMore(
        content="@css:#content@text",
        next_content_url="/c/1_{{index}}.html",
        start=2,
        end="@css:#pages@text",
    )


def test_http_config_with_rate_limit() -> None:
    source = BookSource.from_dict(
        _source_dict(
            httpConfig={
                "timeout": 5000,
                "header": {"Referer": "https://books.example.com"},
                "rateLimit": {"maxCount": 5, "fillDuration": 0.5},
            }
        )
    )
    assert source.http_config == HttpConfig(
        timeout=5000,
        header={"Referer": "https://books.example.com"},
        rate_limit=RateLimit(max_count=5, fill_duration=0.5),
    )


def test_legacy_header_and_respond_time_override() -> None:
    source = BookSource.from_dict(
        _source_dict(header='{"X-Token": "abc"}', respondTime=1200, httpConfig={"timeout": 5000})
    )
    config = source.effective_http_config()
    assert config.header == {"X-Token": "abc"}
    assert config.timeout == 1200


def test_bad_legacy_header_raises() -> None:
    source = BookSource.from_dict(_source_dict(header="not json"))
    with pytest.raises(DecodeError):
        source.effective_http_config()


def test_non_string_header_and_explore_url_are_rejected() -> None:
    with pytest.raises(DecodeError):
        BookSource.from_dict(_source_dict(header={"User-Agent": "x"}))
    with pytest.raises(DecodeError):
        BookSource.from_dict(_source_dict(exploreUrl=[{"title": "玄幻", "url": "/xuanhuan"}]))

    sources = load_book_sources(
        [
            _source_dict(header={"User-Agent": "x"}),
            _source_dict(exploreUrl=[{"title": "玄幻", "url": "/xuanhuan"}]),
            _source_dict(bookSourceName="正常"),
        ]
    )
    assert [source.book_source_name for source in sources] == ["正常"]


def test_missing_required_field_raises() -> None:
    data = _source_dict()
    del data["ruleToc"]
    with pytest.raises(DecodeError):
        BookSource.from_dict(data)
    with pytest.raises(DecodeError):
        BookSource.from_dict(["not", "an", "object"])


def test_load_book_sources_skips_malformed_entries() -> None:
    broken = _source_dict()
    del broken["searchUrl"]
    sources = load_book_sources([_source_dict(), broken, _source_dict(bookSourceName="第二")])
    assert [source.book_source_name for source in sources] == ["示例书源", "第二"]
    assert len(load_book_sources(_source_dict())) == 1
    with pytest.raises(DecodeError):
        load_book_sources("nope")


def test_from_path(tmp_path) -> None:
    path = tmp_path / "sources.json"
    path.write_text(json.dumps([_source_dict()], ensure_ascii=False), encoding="utf-8")
    assert [source.book_source_name for source in BookSource.from_path(path)] == ["示例书源"]

    path.write_text("{broken", encoding="utf-8")
    with pytest.raises(DecodeError):
        BookSource.from_path(path)


def test_from_url(monkeypatch: pytest.MonkeyPatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/sources.json":
            return httpx.Response(200, json=[_source_dict()])
        return httpx.Response(500)

    real_client = httpx.AsyncClient

    def client_factory(**kwargs) -> httpx.AsyncClient:
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr("trnovel.book_source.httpx.AsyncClient", client_factory)

    sources = asyncio.run(BookSource.from_url("https://hub.example.com/sources.json"))
    assert sources[0].book_source_url == "https://books.example.com"
    with pytest.raises(HttpError):
        asyncio.run(BookSource.from_url("https://hub.example.com/broken"))
