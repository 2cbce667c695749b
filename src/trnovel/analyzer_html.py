"""CSS selector analyzer over HTML documents using BeautifulSoup."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from soupsieve import SelectorSyntaxError

from .errors import AnalyzerError

_BLOCK_TAG_RE = re.compile(r"</?(?:div|p|br|hr|h\d|article|b|dd|dl|html)[^>]*>")
_COMMENT_RE = re.compile(r"<!--[\w\W\r\n]*?-->")
_ENTITIES = (
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&nbsp;", " "),
    ("&#39;", "'"),
    ("&quot;", '"'),
    ("<br/>", "\n"),
)


def html_decode(value: str) -> str:
    for entity, replacement in _ENTITIES:
        value = value.replace(entity, replacement)
    return value


def html_to_text(html: str) -> str:
    """Turn block tags into newlines, drop comments and expand common entities."""
    result = _BLOCK_TAG_RE.sub("\n", html)
    result = _COMMENT_RE.sub("", result)
    return html_decode(result)


class HtmlAnalyzer:
    """Evaluate ``SELECTORS@LAST`` rules against one HTML document."""

    kind = "html"

    def __init__(self, content: str) -> None:
        self.content = content
        self._soup = BeautifulSoup(content, "html.parser")

    def get_elements(self, rule: str) -> list[str]:
        return [str(element) for element in self._select(rule.strip())]

    def get_string(self, rule: str) -> str:
        return "  ".join(self.get_string_list(rule))

    def get_string_list(self, rule: str) -> list[str]:
        if "@" not in rule:
            return [_extract(self._soup, rule)]

        selectors, last_rule = rule.split("@", 1)
        if not selectors.strip():
            return []
        return [_extract(element, last_rule) for element in self._select(selectors.strip())]

    def _select(self, selector: str) -> list[Tag]:
        try:
            return self._soup.select(selector)
        except (SelectorSyntaxError, NotImplementedError, ValueError) as exc:
            raise AnalyzerError(self.kind, selector, exc) from exc


def _extract(node: Tag, last_rule: str) -> str:
    if last_rule == "text":
        return node.get_text()
    if last_rule == "textNodes":
        return "\n".join(_child_texts(node)).strip()
    if last_rule == "outerHtml":
        return str(node)
    if last_rule == "innerHtml":
        return node.decode_contents().strip()
    if last_rule == "html":
        return html_to_text(str(node))

    element = node if not isinstance(node, BeautifulSoup) else node.find(True)
    if element is None:
        return ""
    value = element.get(last_rule)
    if value is None:
        return ""
    if isinstance(value, list):
        return " ".join(value)
    return str(value)


def _child_texts(node: Tag) -> list[str]:
    texts: list[str] = []
    for child in node.children:
        if isinstance(child, Comment):
            continue
        if isinstance(child, NavigableString):
            text = child.strip()
        elif isinstance(child, Tag):
            text = child.get_text().strip()
        else:
            continue
        if text:
            texts.append(text)
    return texts
