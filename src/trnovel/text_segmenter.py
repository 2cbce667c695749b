"""Split chapter text into speakable chunks bounded by a UTF-8 byte limit."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import re

from .interfaces import TextSegment
from .utils import byte_len

_LOGGER = logging.getLogger(__name__)

_STOP_RE = re.compile(r"[。！？!?]")
_SUB_RE = re.compile(r"[,;:，；：、]")

DEFAULT_SEGMENT_LIMIT = 200


class SplitLevel(Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


_SPLIT_PATTERNS = {
    SplitLevel.PRIMARY: _STOP_RE,
    SplitLevel.SECONDARY: _SUB_RE,
}


@dataclass(frozen=True)
class PunctuationTextSegmenter:
    """Cut lines at sentence punctuation, then at clause punctuation when still too long.

    Blank lines are dropped. Every segment carries the byte range of its
    untrimmed source in the UTF-8 encoding of the input, so a reader can
    highlight the sentence that is playing. A chunk that has no clause
    punctuation to split on is emitted whole, even when it exceeds ``limit``.
    """

    limit: int = DEFAULT_SEGMENT_LIMIT

    def __post_init__(self) -> None:
        if self.limit <= 0:
            raise ValueError("limit must be positive")

    def segment(self, text: str) -> list[TextSegment]:
        segments = segment_text(text, self.limit)
        _LOGGER.debug("Segmented text into %d chunk(s)", len(segments))
        return segments


def segment_text(text: str, limit: int = DEFAULT_SEGMENT_LIMIT) -> list[TextSegment]:
    return _segment_lines(text, limit, SplitLevel.PRIMARY, 0)


def _segment_lines(text: str, limit: int, level: SplitLevel, byte_offset: int) -> list[TextSegment]:
    pattern = _SPLIT_PATTERNS[level]
    segments: list[TextSegment] = []

    for raw_line in text.split("\n"):
        line = raw_line[:-1] if raw_line.endswith("\r") else raw_line
        line_start = byte_offset
        line_bytes = byte_len(line)
        byte_offset += byte_len(raw_line) + 1

        if not line.strip():
            continue

        if line_bytes <= limit:
            segments.append(TextSegment(line.strip(), line_start, line_start + line_bytes))
            continue

        last_split = 0
        split_byte = 0
        for match in pattern.finditer(line):
            piece = line[last_split : match.end()]
            segments.extend(_emit(piece, limit, level, line_start + split_byte))
            last_split = match.end()
            split_byte += byte_len(piece)

        if last_split < len(line):
            segments.extend(_emit(line[last_split:], limit, level, line_start + split_byte))

    return segments


def _emit(piece: str, limit: int, level: SplitLevel, start: int) -> list[TextSegment]:
    piece_bytes = byte_len(piece)
    if piece_bytes > limit and level is SplitLevel.PRIMARY:
        return _segment_lines(piece, limit, SplitLevel.SECONDARY, start)

    cleaned = piece.strip()
    if not cleaned:
        return []
    return [TextSegment(cleaned, start, start + piece_bytes)]
