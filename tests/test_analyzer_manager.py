from __future__ import annotations

import json

import pytest

from trnovel.analyzer_manager import AnalyzerManager
from trnovel.errors import TemplateRecursionError, UnknownVariableError

HTML = """
<div class="book">
  <h1>遮天</h1>
  <p class="author">辰东</p>
  <ul><li><a href="/1.html">第一章</a></li><li><a href="/2.html">第二章</a></li></ul>
</div>
"""

JSON_DATA = json.dumps(
    {
        "id": 7,
        "name": "遮天",
        "html": "<p>第12章 风起</p>",
        "data": {"list": [{"name": "遮天"}, {"name": "完美世界"}]},
    },
    ensure_ascii=False,
)


def test_template_with_variable_and_json_path() -> None:
    manager = AnalyzerManager({"book": "123"})
    result = manager.get_string(
        "https://example.com/read?bkid=@get:{book}&crid={{$.chapter_id}}&pg=1",
        '{"chapter_id": 300}',
    )
    assert result == "https://example.com/read?bkid=123&crid=300&pg=1"


def test_template_prefers_extra_values() -> None:
    manager = AnalyzerManager()
    result = manager.get_string(
        "/search?q={{key}}&page={{page}}",
        "",
        {"key": "遮天", "page": 2},
    )
    assert result == "/search?q=遮天&page=2"


def test_put_then_get_across_calls() -> None:
    manager = AnalyzerManager()
    assert manager.get_string("@put:{bid:$.id}$.name", JSON_DATA) == "遮天"
    assert manager.variables["bid"] == "7"
    assert manager.get_string("/book/{{$.name}}/@get:{bid}", JSON_DATA) == "/book/遮天/7"


def test_set_stores_string() -> None:
    manager = AnalyzerManager()
    manager.set("page", 3)
    assert manager.get_string("p={{$.id}}&n=@get:{page}", JSON_DATA) == "p=7&n=3"


def test_unknown_variable_raises() -> None:
    with pytest.raises(UnknownVariableError) as excinfo:
        AnalyzerManager().get_string("@get:{missing}", HTML)
    assert excinfo.value.key == "missing"


def test_and_operator_joins_non_empty_results() -> None:
    manager = AnalyzerManager()
    assert manager.get_string("@css:h1@text&&p.author@text", HTML) == "遮天  辰东"
    assert manager.get_string("@css:h1@text&&p.missing@text", HTML) == "遮天"


def test_or_operator_returns_first_non_empty() -> None:
    manager = AnalyzerManager()
    assert manager.get_string("class.missing@text||class.author@text", HTML) == "辰东"
    assert manager.get_string("class.missing@text||class.none@text", HTML) == ""


def test_and_then_or_when_both_sides_succeed() -> None:
    manager = AnalyzerManager()
    assert manager.get_string("@css:h1@text&&p.author@text||li a@text", HTML) == "遮天  辰东"


def test_chained_stages_apply_replacement_per_stage() -> None:
    manager = AnalyzerManager()
    assert manager.get_string("$.html@css:p@text##\\d+", JSON_DATA) == "第章 风起"


def test_get_elements_flows_through_stages() -> None:
    manager = AnalyzerManager()
    assert manager.get_elements("$.data.list@json:$.name", JSON_DATA) == ['"遮天"', '"完美世界"']


def test_get_elements_with_operators() -> None:
    manager = AnalyzerManager()
    items = manager.get_elements("@css:ul li&&h1", HTML)
    assert len(items) == 3
    assert manager.get_elements("@css:table||ul a", HTML) == [
        '<a href="/1.html">第一章</a>',
        '<a href="/2.html">第二章</a>',
    ]


def test_empty_rules() -> None:
    manager = AnalyzerManager()
    assert manager.get_string("", HTML) == ""
    assert manager.get_elements("", HTML) == []


def test_self_referencing_template_is_bounded() -> None:
    manager = AnalyzerManager({"k": "{{ @get:{k} }}"})
    with pytest.raises(TemplateRecursionError, match="16 levels"):
        manager.get_string("@get:{k}", JSON_DATA)


def test_and_binds_looser_than_or() -> None:
    manager = AnalyzerManager()
    assert manager.get_string("@css:h1@text&&.missing@text||.author@text", HTML) == "遮天  辰东"
    assert manager.get_string("@css:.missing@text&&.none@text||.author@text", HTML) == "辰东"
    assert manager.get_string("@css:h1@text&&.author@text||.missing@text", HTML) == "遮天  辰东"
