from __future__ import annotations

import pytest

from trnovel.analyzer_default import DefaultAnalyzer, rule_to_selector
from trnovel.errors import InvalidRuleError


@pytest.mark.parametrize(
    ("rule", "expected"),
    [
        (
            "class.result-game-item-info@tag.p.0@tag.span.1@text",
            ".result-game-item-info p:nth-of-type(1) span:nth-of-type(2) @text",
        ),
        ("id.intro@tag.p.0@text", "#intro p:nth-of-type(1) @text"),
        ("class.bookbox", ".bookbox"),
        ("id.fmimg@img@src", "#fmimg img @src"),
        (
            "[property=og:novel:update_time]@content",
            '[property="og:novel:update_time"] @content',
        ),
        (
            "class.bookbox[1,4,3]",
            ".bookbox:is(:nth-of-type(2),:nth-of-type(5),:nth-of-type(4))",
        ),
        (
            "class.bookbox[!1,4,3]",
            ".bookbox:not(:nth-of-type(2),:nth-of-type(5),:nth-of-type(4))",
        ),
        (
            "class.bookbox[3:10]",
            ".bookbox:is(:nth-of-type(n+4):not(:nth-of-type(n+11)))",
        ),
        ("class.bookbox[-1]", ".bookbox:is(:nth-last-of-type(1))"),
    ],
)
def test_rule_to_selector(rule: str, expected: str) -> None:
    assert rule_to_selector(rule) == expected


def test_rule_to_selector_rejects_bad_index() -> None:
    with pytest.raises(InvalidRuleError):
        rule_to_selector("tag.p.first@text")


def test_rule_to_selector_rejects_long_segment() -> None:
    with pytest.raises(InvalidRuleError):
        rule_to_selector("tag.p.0.1@text")


def test_default_analyzer_reads_attribute() -> None:
    analyzer = DefaultAnalyzer('<li><a href="/xuanhuan/">玄幻小说</a></li>')
    assert analyzer.get_string("tag.a@href") == "/xuanhuan/"


def test_default_analyzer_selects_by_position() -> None:
    html = "<div class='list'><p>one</p><p>two</p><p>three</p></div>"
    analyzer = DefaultAnalyzer(html)
    assert analyzer.get_string("class.list@tag.p.1@text") == "two"
    assert analyzer.get_elements("class.list@tag.p[0,2]") == ["<p>one</p>", "<p>three</p>"]
