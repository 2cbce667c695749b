"""JSONPath analyzer backed by jsonpath-ng."""

from __future__ import annotations

import json
from typing import Any

from jsonpath_ng.exceptions import JSONPathError
from jsonpath_ng.ext import parse as parse_jsonpath

from .errors import AnalyzerError, DecodeError, InvalidValueTypeError


def value_to_string(value: Any, rule: str = "") -> str:
    """Render a JSON scalar the way it would appear in JSON text, without quotes."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return json.dumps(value)
    raise InvalidValueTypeError(JsonPathAnalyzer.kind, rule, f"invalid value type {type(value).__name__}")


class JsonPathAnalyzer:
    kind = "json_path"

    def __init__(self, content: str) -> None:
        try:
            self.content = json.loads(content)
        except json.JSONDecodeError as exc:
            raise DecodeError(f"Invalid JSON document: {exc}") from exc

    def find(self, rule: str) -> list[Any]:
        try:
            expression = parse_jsonpath(rule.strip())
        except JSONPathError as exc:
            raise AnalyzerError(self.kind, rule, exc) from exc
        return [match.value for match in expression.find(self.content)]

    def get_string(self, rule: str) -> str:
        matches = self.find(rule)
        if not matches:
            return ""
        first = matches[0]
        if isinstance(first, list):
            if not first:
                return ""
            first = first[0]
        return value_to_string(first, rule)

    def get_elements(self, rule: str) -> list[str]:
        matches = self.find(rule)
        if len(matches) == 1 and isinstance(matches[0], list):
            matches = matches[0]
        return [json.dumps(item, ensure_ascii=False) for item in matches]
