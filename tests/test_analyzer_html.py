from __future__ import annotations

import pytest

from trnovel.analyzer_html import HtmlAnalyzer, html_decode, html_to_text
from trnovel.errors import AnalyzerError

BOOK_PAGE = """
<html><body>
  <div id="info">
    <h1>遮天</h1>
    <p class="author">作者：辰东</p>
    <img class="cover" src="/cover.jpg" data-tags="a b">
  </div>
  <ul class="chapters">
    <li><a href="/1.html">第一章 星空</a></li>
    <li><a href="/2.html">第二章 青铜</a></li>
  </ul>
  <div id="content">第一段<br/>第二段<!-- ad --><span>尾注</span></div>
</body></html>
"""


@pytest.fixture()
def analyzer() -> HtmlAnalyzer:
    return HtmlAnalyzer(BOOK_PAGE)


def test_get_string_text(analyzer: HtmlAnalyzer) -> None:
    assert analyzer.get_string("#info h1@text") == "遮天"


def test_get_string_joins_matches_with_two_spaces(analyzer: HtmlAnalyzer) -> None:
    assert analyzer.get_string("ul.chapters a@text") == "第一章 星空  第二章 青铜"


def test_get_string_list_returns_each_match(analyzer: HtmlAnalyzer) -> None:
    assert analyzer.get_string_list("ul.chapters a@href") == ["/1.html", "/2.html"]


def test_attribute_missing_is_empty(analyzer: HtmlAnalyzer) -> None:
    assert analyzer.get_string("#info h1@title") == ""


def test_list_attribute_is_space_joined(analyzer: HtmlAnalyzer) -> None:
    assert analyzer.get_string("img.cover@class") == "cover"
    assert analyzer.get_string("img.cover@src") == "/cover.jpg"


def test_text_nodes_skip_comments(analyzer: HtmlAnalyzer) -> None:
    assert analyzer.get_string("#content@textNodes") == "第一段\n第二段\n尾注"


def test_inner_and_outer_html(analyzer: HtmlAnalyzer) -> None:
    assert analyzer.get_string("#info h1@innerHtml") == "遮天"
    assert analyzer.get_string("#info h1@outerHtml") == "<h1>遮天</h1>"


def test_html_mode_turns_blocks_into_newlines(analyzer: HtmlAnalyzer) -> None:
    text = analyzer.get_string("#content@html")
    assert "第一段\n第二段" in text
    assert "ad" not in text


def test_empty_selector_yields_nothing(analyzer: HtmlAnalyzer) -> None:
    assert analyzer.get_string_list("@text") == []
    assert analyzer.get_string("@text") == ""


def test_rule_without_keyword_reads_document_attribute() -> None:
    analyzer = HtmlAnalyzer('<a href="/book/1">link</a>')
    assert analyzer.get_string("href") == "/book/1"


def test_get_elements_returns_outer_html(analyzer: HtmlAnalyzer) -> None:
    elements = analyzer.get_elements("ul.chapters li")
    assert elements == [
        '<li><a href="/1.html">第一章 星空</a></li>',
        '<li><a href="/2.html">第二章 青铜</a></li>',
    ]


def test_no_match_returns_empty_list(analyzer: HtmlAnalyzer) -> None:
    assert analyzer.get_elements("table tr") == []
    assert analyzer.get_string("table tr@text") == ""


def test_invalid_selector_raises_analyzer_error(analyzer: HtmlAnalyzer) -> None:
    with pytest.raises(AnalyzerError):
        analyzer.get_elements("div[")


def test_html_decode_entities() -> None:
    assert html_decode("a&amp;b&lt;c&gt;&nbsp;&#39;&quot;") == "a&b<c> '\""


def test_html_to_text_strips_comments() -> None:
    assert html_to_text("<p>one</p><!-- hidden --><div>two</div>") == "\none\n\ntwo\n"
