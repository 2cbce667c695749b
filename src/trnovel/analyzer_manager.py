"""Rule evaluation: variables, templates and chained analyzer stages."""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping

from .analyzer_default import DefaultAnalyzer
from .analyzer_html import HtmlAnalyzer
from .analyzer_json import JsonPathAnalyzer, value_to_string
from .errors import TemplateRecursionError, UnknownVariableError
from .interfaces import Analyzer
from .rule_parser import AnalyzerKind, split_rule

_LOGGER = logging.getLogger(__name__)

_PUT_RE = re.compile(r"@put:\{(.+?):(.+?)\}")
_GET_RE = re.compile(r"@get:\{(.+?)\}")
_EXPRESSION_RE = re.compile(r"\{\{(.+?)\}\}")

MAX_TEMPLATE_DEPTH = 16

_ANALYZER_TYPES = {
    AnalyzerKind.HTML: HtmlAnalyzer,
    AnalyzerKind.JSON_PATH: JsonPathAnalyzer,
    AnalyzerKind.DEFAULT: DefaultAnalyzer,
}


def build_analyzer(kind: AnalyzerKind, content: str) -> Analyzer:
    return _ANALYZER_TYPES[kind](content)


class AnalyzerManager:
    """Evaluate rule strings against HTML or JSON text.

    ``variables`` holds the values captured with ``@put:{key:rule}``; they stay
    available to ``@get:{key}`` for the lifetime of the manager. One manager
    belongs to one parser and is not shared between tasks.
    """

    def __init__(self, variables: Mapping[str, str] | None = None) -> None:
        self.variables: dict[str, str] = dict(variables or {})

    def set(self, key: str, value: Any) -> None:
        self.variables[key] = str(value)

    def get_string(self, rule: str, data: str, extra: Mapping[str, Any] | None = None) -> str:
        return self._get_string(rule, data, extra, depth=0)

    def get_elements(self, rule: str, data: str) -> list[str]:
        if not rule:
            return []

        items = [data]
        for stage in split_rule(rule):
            results: list[str] = []
            for item in items:
                analyzer = build_analyzer(stage.kind, item)
                results.extend(_elements_with_operators(analyzer, stage.rule))
            items = results
        _LOGGER.debug("Rule %r matched %d elements", rule, len(items))
        return items

    def _get_string(
        self,
        rule: str,
        data: str,
        extra: Mapping[str, Any] | None,
        *,
        depth: int,
    ) -> str:
        if not rule:
            return ""
        if depth > MAX_TEMPLATE_DEPTH:
            raise TemplateRecursionError(
                f"Template nesting exceeded {MAX_TEMPLATE_DEPTH} levels while evaluating {rule!r}"
            )

        rule = self._put_variables(rule, data, depth)
        rule = self._get_variables(rule)

        left = rule.rfind("{{")
        right = rule.rfind("}}")
        if left != -1 and right != -1 and left < right:
            return _EXPRESSION_RE.sub(
                lambda match: self._expand_expression(match.group(1).strip(), data, extra, depth),
                rule,
            )

        temp = data
        for stage in split_rule(rule):
            analyzer = build_analyzer(stage.kind, temp)
            temp = stage.replace_content(_string_with_operators(analyzer, stage.rule))
        return temp

    def _put_variables(self, rule: str, data: str, depth: int) -> str:
        def store(match: re.Match[str]) -> str:
            key = match.group(1).strip()
            sub_rule = match.group(2).strip()
            self.variables[key] = self._get_string(sub_rule, data, None, depth=depth + 1)
            return ""

        return _PUT_RE.sub(store, rule)

    def _get_variables(self, rule: str) -> str:
        def lookup(match: re.Match[str]) -> str:
            key = match.group(1).strip()
            if key not in self.variables:
                raise UnknownVariableError(key)
            return self.variables[key]

        return _GET_RE.sub(lookup, rule)

    def _expand_expression(
        self,
        sub_rule: str,
        data: str,
        extra: Mapping[str, Any] | None,
        depth: int,
    ) -> str:
        if extra is not None and sub_rule in extra:
            return value_to_string(extra[sub_rule], sub_rule)
        return self._get_string(sub_rule, data, None, depth=depth + 1)


def _string_with_operators(analyzer: Analyzer, rule: str) -> str:
    """Evaluate `&&` before `||`, so `A && B || C` reads as `A && (B || C)`."""
    if "&&" in rule:
        results = [_string_with_operators(analyzer, part) for part in rule.split("&&")]
        return "  ".join(result for result in results if result)
    if "||" in rule:
        for part in rule.split("||"):
            result = _string_with_operators(analyzer, part)
            if result:
                return result
        return ""
    return analyzer.get_string(rule).strip()


def _elements_with_operators(analyzer: Analyzer, rule: str) -> list[str]:
    if "&&" in rule:
        elements: list[str] = []
        for part in rule.split("&&"):
            elements.extend(_elements_with_operators(analyzer, part))
        return elements
    if "||" in rule:
        for part in rule.split("||"):
            elements = _elements_with_operators(analyzer, part)
            if elements:
                return elements
        return []
    return analyzer.get_elements(rule)
