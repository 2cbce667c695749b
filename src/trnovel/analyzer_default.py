"""Compact ``class.x@tag.p.0@text`` rule grammar translated to CSS selectors."""

from __future__ import annotations

import re

from .analyzer_html import HtmlAnalyzer
from .errors import InvalidRuleError

_PREFIXES = {"class": ".", "id": "#", "tag": ""}
_RANGE_RE = re.compile(r"\[(.*?)\]")


def rule_to_selector(rule: str) -> str:
    """Translate a default-grammar rule into a selector understood by `HtmlAnalyzer`.

    Segments are separated by ``@``. A final segment without a ``.`` is kept as the
    ``@keyword`` (attribute or text mode) for the HTML analyzer.
    """
    selectors: list[str] = []
    segments = rule.split("@")
    last = len(segments) - 1

    for index, raw_segment in enumerate(segments):
        if index == last and "." not in raw_segment:
            selectors.append(f"@{raw_segment}")
            continue

        segment = raw_segment.strip()
        position = ""
        range_match = _RANGE_RE.search(segment)
        if range_match:
            segment = segment[: range_match.start()]
            position = range_match.group(1).strip()

        selector = _segment_selector(segment, rule)

        if position:
            if "=" in position:
                name, value = position.split("=", 1)
                selector = f'{selector}[{name}="{value}"]'
            elif position.startswith("!"):
                selector = f"{selector}:not({_positions(position[1:], rule)})"
            else:
                selector = f"{selector}:is({_positions(position, rule)})"
        selectors.append(selector)

    return " ".join(selectors)


def _segment_selector(segment: str, rule: str) -> str:
    parts = segment.split(".")
    if len(parts) == 1:
        return parts[0]
    if len(parts) > 3:
        raise InvalidRuleError(rule, f"unrecognized segment {segment!r}")

    selector = f"{_PREFIXES.get(parts[0], '')}{parts[1]}"
    if len(parts) == 3:
        selector += f":nth-of-type({_parse_index(parts[2], rule) + 1})"
    return selector


def _positions(indexes: str, rule: str) -> str:
    items: list[str] = []
    for item in indexes.split(","):
        if ":" in item:
            bounds = item.split(":")
            start = _parse_index(bounds[0], rule) + 1
            end = _parse_index(bounds[1], rule) + 1
            step = bounds[2].strip() if len(bounds) > 2 else ""
            items.append(f":nth-of-type({step}n+{start}):not(:nth-of-type({step}n+{end}))")
            continue

        position = _parse_index(item, rule)
        if position < 0:
            items.append(f":nth-last-of-type({abs(position)})")
        else:
            items.append(f":nth-of-type({position + 1})")
    return ",".join(items)


def _parse_index(value: str, rule: str) -> int:
    try:
        return int(value.strip())
    except ValueError as exc:
        raise InvalidRuleError(rule, f"index {value!r} is not an integer") from exc


class DefaultAnalyzer:
    kind = "default"

    def __init__(self, content: str) -> None:
        self._html = HtmlAnalyzer(content)

    def get_string(self, rule: str) -> str:
        return self._html.get_string(rule_to_selector(rule))

    def get_elements(self, rule: str) -> list[str]:
        return self._html.get_elements(rule_to_selector(rule))
