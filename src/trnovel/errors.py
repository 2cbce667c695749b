"""Error taxonomy shared by the rule engine, HTTP layer and TTS pipeline."""

from __future__ import annotations


class TrnovelError(RuntimeError):
    """Base class for trnovel failures."""


class InvalidRuleError(TrnovelError):
    """Raised when a rule string cannot be parsed."""

    def __init__(self, rule: str, detail: str) -> None:
        super().__init__(f"Invalid rule {rule!r}: {detail}")
        self.rule = rule
        self.detail = detail


class AnalyzerError(TrnovelError):
    """Raised when an analyzer cannot evaluate a rule against a document."""

    def __init__(self, kind: str, rule: str, cause: BaseException | str) -> None:
        super().__init__(f"{kind} analyzer failed on {rule!r}: {cause}")
        self.kind = kind
        self.rule = rule
        self.cause = cause


class InvalidValueTypeError(AnalyzerError):
    """Raised when a JSONPath result cannot be turned into a string."""


class UnknownVariableError(TrnovelError):
    """Raised when `@get:{key}` refers to a variable that was never stored."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Unknown variable: {key}")
        self.key = key


class TemplateRecursionError(TrnovelError):
    """Raised when `{{...}}` substitution nests deeper than the allowed depth."""


class HttpError(TrnovelError):
    """Raised for network failures, timeouts and non-2xx responses."""

    def __init__(
        self,
        url: str,
        *,
        status: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        if status is not None:
            message = f"HTTP {status} for {url}"
        else:
            message = f"Request to {url} failed: {cause}"
        super().__init__(message)
        self.url = url
        self.status = status
        self.cause = cause


class RateLimitCancelledError(TrnovelError):
    """Raised when waiting on a token bucket whose refill loop was stopped."""


class DecodeError(TrnovelError):
    """Raised when JSON or text decoding fails."""


class SynthError(TrnovelError):
    """Raised when synthesizing one text segment fails."""

    def __init__(self, text: str, cause: BaseException | str) -> None:
        super().__init__(f"Synthesis failed: {cause}")
        self.text = text
        self.cause = cause


class TtsInputError(SynthError):
    """Raised when input text is empty or non-speech."""


class TtsModelError(TrnovelError):
    """Raised when the speech model cannot be loaded or initialized."""


class NoMoreSegments(TrnovelError):
    """Signals that the audio queue reached its terminal state."""
