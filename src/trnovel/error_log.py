"""Structured error logging for diagnostics.

Each CLI run that hits failures leaves one JSON file under the configured
errors directory, so a broken book source or a segment the synthesizer
rejected can be inspected after the terminal output is gone.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import json
from pathlib import Path
from typing import Any
import traceback

from .errors import (
    AnalyzerError,
    DecodeError,
    HttpError,
    InvalidRuleError,
    RateLimitCancelledError,
    SynthError,
    TemplateRecursionError,
    TtsInputError,
    TtsModelError,
    UnknownVariableError,
)
from .utils import ensure_dir, slugify


class ErrorCategory(Enum):
    """Categories of errors for structured classification."""

    # Book source rules
    RULE_PARSE = "rule_parse"
    ANALYZER = "analyzer"
    TEMPLATE = "template"

    # Network
    HTTP = "http"
    RATE_LIMIT = "rate_limit"
    DECODE = "decode"

    # TTS errors
    TTS_MODEL_LOAD = "tts_model_load"
    TTS_INPUT = "tts_input"
    TTS_SYNTHESIS = "tts_synthesis"

    # System errors
    FILE_IO = "file_io"
    PERMISSION = "permission"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def categorize_exception(exc: BaseException) -> ErrorCategory:
    """Map an exception to the category it is filed under."""
    if isinstance(exc, InvalidRuleError):
        return ErrorCategory.RULE_PARSE
    if isinstance(exc, AnalyzerError):
        return ErrorCategory.ANALYZER
    if isinstance(exc, (UnknownVariableError, TemplateRecursionError)):
        return ErrorCategory.TEMPLATE
    if isinstance(exc, HttpError):
        return ErrorCategory.HTTP
    if isinstance(exc, RateLimitCancelledError):
        return ErrorCategory.RATE_LIMIT
    if isinstance(exc, DecodeError):
        return ErrorCategory.DECODE
    if isinstance(exc, TtsModelError):
        return ErrorCategory.TTS_MODEL_LOAD
    if isinstance(exc, TtsInputError):
        return ErrorCategory.TTS_INPUT
    if isinstance(exc, SynthError):
        return ErrorCategory.TTS_SYNTHESIS
    if isinstance(exc, PermissionError):
        return ErrorCategory.PERMISSION
    if isinstance(exc, OSError):
        return ErrorCategory.FILE_IO
    return ErrorCategory.UNKNOWN


@dataclass(frozen=True)
class ErrorEntry:
    """A single structured error entry."""

    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    timestamp: str
    step: str | None = None
    chapter_index: int | None = None
    details: dict[str, Any] | None = None
    exception_type: str | None = None
    exception_message: str | None = None
    stack_trace: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "category": self.category.value,
            "severity": self.severity.value,
            "step": self.step,
            "chapter_index": self.chapter_index,
            "message": self.message,
            "details": self.details,
            "exception_type": self.exception_type,
            "exception_message": self.exception_message,
            "stack_trace": self.stack_trace,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ErrorEntry":
        return cls(
            category=ErrorCategory(data["category"]),
            severity=ErrorSeverity(data["severity"]),
            message=data["message"],
            timestamp=data["timestamp"],
            step=data.get("step"),
            chapter_index=data.get("chapter_index"),
            details=data.get("details"),
            exception_type=data.get("exception_type"),
            exception_message=data.get("exception_message"),
            stack_trace=data.get("stack_trace"),
        )


@dataclass
class ErrorLog:
    """Structured error log for a single CLI run."""

    run_id: str
    command: str
    errors: list[ErrorEntry] = field(default_factory=list)

    def add_error(
        self,
        category: ErrorCategory | None,
        severity: ErrorSeverity,
        message: str,
        *,
        step: str | None = None,
        chapter_index: int | None = None,
        details: dict[str, Any] | None = None,
        exc: BaseException | None = None,
    ) -> ErrorEntry:
        """Add an entry; the category is derived from ``exc`` when not given."""
        timestamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
        exception_type = None
        exception_message = None
        stack_trace = None

        if exc is not None:
            exception_type = type(exc).__name__
            exception_message = str(exc)
            stack_trace = "".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            ).strip()
            if category is None:
                category = categorize_exception(exc)

        entry = ErrorEntry(
            category=category or ErrorCategory.UNKNOWN,
            severity=severity,
            message=message,
            timestamp=timestamp,
            step=step,
            chapter_index=chapter_index,
            details=details,
            exception_type=exception_type,
            exception_message=exception_message,
            stack_trace=stack_trace,
        )
        self.errors.append(entry)
        return entry

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "command": self.command,
            "error_count": len(self.errors),
            "errors": [entry.to_dict() for entry in self.errors],
        }


class ErrorLogStore:
    """Persistent storage for structured error logs."""

    def __init__(self, root: Path) -> None:
        self.root = ensure_dir(root)

    def load(self, run_id: str, command: str) -> ErrorLog | None:
        path = self._path_for(run_id, command)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text("utf-8"))
            return ErrorLog(
                run_id=data["run_id"],
                command=data["command"],
                errors=[ErrorEntry.from_dict(item) for item in data.get("errors", [])],
            )
        except (OSError, json.JSONDecodeError, KeyError, ValueError):
            # A corrupted log is replaced on the next save
            return None

    def save(self, log: ErrorLog) -> Path | None:
        """Write ``log`` atomically; runs without errors leave no file."""
        if not log.errors:
            return None
        path = self._path_for(log.run_id, log.command)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps(log.to_dict(), indent=2, ensure_ascii=False), "utf-8")
        tmp_path.replace(path)
        return path

    def get_log(self, run_id: str, command: str) -> ErrorLog:
        existing = self.load(run_id, command)
        if existing is not None:
            return existing
        return ErrorLog(run_id=run_id, command=command)

    def _path_for(self, run_id: str, command: str) -> Path:
        return self.root / f"{slugify(command, fallback='run')}-{run_id}.json"
