"""Split book-source rule strings into ordered single-analyzer stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import re

from .errors import InvalidRuleError

_SPLIT_RULE_RE = re.compile(
    r"@css:|@json:|@http:|@xpath:|@match:|@regex:|@regexp:|@replace:|@encode:|@decode:|^"
)
_DOLLAR_GROUP_RE = re.compile(r"\$(?:(\d+)|\{(\w+)\}|(\$))")
REPLACE_SEPARATOR = "##"


class AnalyzerKind(Enum):
    HTML = "html"
    JSON_PATH = "json_path"
    DEFAULT = "default"


@dataclass(frozen=True)
class AnalyzerSpec:
    """A registered analyzer: a classifying regex plus the prefix it strips."""

    pattern: re.Pattern[str]
    strip: re.Pattern[str] | None
    kind: AnalyzerKind

    def matches(self, rule: str) -> bool:
        return self.pattern.search(rule.strip()) is not None

    def take_token(self, rule: str) -> str:
        match = (self.strip or self.pattern).match(rule)
        return match.group(0) if match else ""


ANALYZERS: tuple[AnalyzerSpec, ...] = (
    AnalyzerSpec(re.compile(r"^@css:"), None, AnalyzerKind.HTML),
    AnalyzerSpec(re.compile(r"^@json:|^\$"), re.compile(r"^@json:"), AnalyzerKind.JSON_PATH),
    AnalyzerSpec(re.compile(r""), None, AnalyzerKind.DEFAULT),
)


@dataclass(frozen=True)
class SingleRule:
    """One stage of a rule chain.

    ``rule`` is the body handed to the analyzer, ``replace`` the raw text after
    the first ``##`` (``None`` when the stage has no replacement) and ``token``
    the analyzer prefix that was stripped from the stage.
    """

    rule: str
    kind: AnalyzerKind
    replace: str | None = None
    token: str = ""
    _pattern: re.Pattern[str] | None = field(default=None, init=False, repr=False, compare=False)
    _template: str = field(default="", init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.replace:
            return
        regex, sep, replacement = self.replace.partition(REPLACE_SEPARATOR)
        try:
            pattern = re.compile(regex)
        except re.error as exc:
            raise InvalidRuleError(self.source(), f"bad replacement regex {regex!r}: {exc}") from exc
        object.__setattr__(self, "_pattern", pattern)
        object.__setattr__(self, "_template", _to_python_template(replacement) if sep else "")

    def replace_content(self, content: str) -> str:
        if self._pattern is None:
            return content
        return self._pattern.sub(self._template, content)

    def source(self) -> str:
        """Rebuild the stage exactly as it appeared in the rule string."""
        suffix = f"{REPLACE_SEPARATOR}{self.replace}" if self.replace is not None else ""
        return f"{self.token}{self.rule}{suffix}"


def get_analyzer(rule: str) -> AnalyzerSpec:
    for spec in ANALYZERS:
        if spec.matches(rule):
            return spec
    return ANALYZERS[-1]


def split_rule(rule: str) -> list[SingleRule]:
    starts = [match.start() for match in _SPLIT_RULE_RE.finditer(rule)]
    stages: list[SingleRule] = []
    end = len(rule)

    for start in reversed(starts):
        segment = rule[start:end]
        end = start

        spec = get_analyzer(segment)
        token = spec.take_token(segment)
        body = segment[len(token):]

        if REPLACE_SEPARATOR in body:
            body, replace = body.split(REPLACE_SEPARATOR, 1)
            stages.append(SingleRule(body, spec.kind, replace=replace, token=token))
        else:
            stages.append(SingleRule(body, spec.kind, token=token))

    stages.reverse()
    return stages


def _to_python_template(replacement: str) -> str:
    escaped = replacement.replace("\\", "\\\\")

    def convert(match: re.Match[str]) -> str:
        number, name, dollar = match.groups()
        if dollar:
            return "$"
        return f"\\g<{number or name}>"

    return _DOLLAR_GROUP_RE.sub(convert, escaped)
