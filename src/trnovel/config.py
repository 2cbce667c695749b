"""Configuration loading and defaults."""

from __future__ import annotations

from dataclasses import dataclass
import copy
from pathlib import Path
import tomllib
from typing import Any, Mapping

CONFIG_FILENAME = "trnovel.toml"

DEFAULT_CONFIG: dict[str, Any] = {
    "paths": {
        "sources": "book_sources.json",
        "out": "out",
        "cache": "cache",
        "logs": "logs",
        "errors": "errors",
    },
    "logging": {
        "level": "INFO",
        "console_level": "INFO",
    },
    "http": {
        "timeout_ms": 30000,
        "user_agent": "Mozilla/5.0 (X11; Linux x86_64) trnovel",
    },
    "tts": {
        "model_id": "fastrtc/kokoro-onnx",
        "onnx_model_file": "kokoro-v1.0.onnx",
        "onnx_voices_file": "voices-v1.0.bin",
        "voice": "zf_xiaobei",
        "lang_code": "cmn",
        "speed": 1.0,
        "sample_rate": 24000,
        "segment_limit": 200,
        "execution_provider": "auto",
    },
    "download": {
        "concurrency": 4,
    },
}

DEFAULT_CONFIG_TEXT = """\
[paths]
sources = "book_sources.json"
out = "out"
cache = "cache"
logs = "logs"
errors = "errors"

[logging]
level = "INFO"
console_level = "INFO"

[http]
timeout_ms = 30000

[tts]
model_id = "fastrtc/kokoro-onnx"
onnx_model_file = "kokoro-v1.0.onnx"
onnx_voices_file = "voices-v1.0.bin"
voice = "zf_xiaobei"
lang_code = "cmn"
speed = 1.0
sample_rate = 24000
segment_limit = 200
execution_provider = "auto"

[download]
concurrency = 4
"""


@dataclass(frozen=True)
class PathsConfig:
    sources: Path
    out: Path
    cache: Path
    logs: Path
    errors: Path


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    console_level: str


@dataclass(frozen=True)
class HttpSettings:
    timeout_ms: int
    user_agent: str | None


@dataclass(frozen=True)
class TtsConfig:
    model_id: str
    onnx_model_file: str
    onnx_voices_file: str
    voice: str
    lang_code: str
    speed: float
    sample_rate: int
    segment_limit: int
    execution_provider: str


@dataclass(frozen=True)
class DownloadConfig:
    concurrency: int


@dataclass(frozen=True)
class Config:
    paths: PathsConfig
    logging: LoggingConfig
    http: HttpSettings
    tts: TtsConfig
    download: DownloadConfig
    source: Path | None = None


def load_config(config_path: Path | None = None, *, cwd: Path | None = None) -> Config:
    cwd = cwd or Path.cwd()
    source: Path | None = None
    raw: Mapping[str, Any] = {}

    if config_path is None:
        candidate = cwd / CONFIG_FILENAME
        if candidate.exists():
            source = candidate
            raw = _read_toml(candidate)
    else:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        source = config_path
        raw = _read_toml(config_path)

    merged = _deep_merge(copy.deepcopy(DEFAULT_CONFIG), raw)
    base_dir = source.parent if source is not None else cwd

    paths_raw = merged["paths"]
    paths = PathsConfig(
        sources=_resolve_path(base_dir, paths_raw["sources"]),
        out=_resolve_path(base_dir, paths_raw["out"]),
        cache=_resolve_path(base_dir, paths_raw["cache"]),
        logs=_resolve_path(base_dir, paths_raw["logs"]),
        errors=_resolve_path(base_dir, paths_raw["errors"]),
    )
    logging = LoggingConfig(
        level=str(merged["logging"]["level"]).upper(),
        console_level=str(merged["logging"]["console_level"]).upper(),
    )
    http_raw = merged["http"]
    http = HttpSettings(
        timeout_ms=int(http_raw.get("timeout_ms", 30000)),
        user_agent=_optional_str(http_raw.get("user_agent")),
    )
    tts_raw = merged["tts"]
    tts_defaults = DEFAULT_CONFIG["tts"]
    tts = TtsConfig(
        model_id=str(tts_raw.get("model_id", tts_defaults["model_id"])),
        onnx_model_file=str(tts_raw.get("onnx_model_file", tts_defaults["onnx_model_file"])),
        onnx_voices_file=str(tts_raw.get("onnx_voices_file", tts_defaults["onnx_voices_file"])),
        voice=_optional_str(tts_raw.get("voice")) or tts_defaults["voice"],
        lang_code=_optional_str(tts_raw.get("lang_code")) or tts_defaults["lang_code"],
        speed=float(tts_raw.get("speed", 1.0)),
        sample_rate=int(tts_raw.get("sample_rate", 24000)),
        segment_limit=int(tts_raw.get("segment_limit", 200)),
        execution_provider=str(tts_raw.get("execution_provider", "auto")),
    )
    download = DownloadConfig(concurrency=max(1, int(merged["download"].get("concurrency", 4))))
    return Config(paths=paths, logging=logging, http=http, tts=tts, download=download, source=source)


def write_default_config(path: Path, *, overwrite: bool = False) -> Path:
    if path.exists() and not overwrite:
        raise FileExistsError(f"Config file already exists: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG_TEXT, encoding="utf-8")
    return path


def config_summary(config: Config) -> str:
    source = str(config.source) if config.source is not None else "defaults"
    return (
        "Config\n"
        f"  source: {source}\n"
        f"  sources: {config.paths.sources}\n"
        f"  out: {config.paths.out}\n"
        f"  cache: {config.paths.cache}\n"
        f"  logs: {config.paths.logs}\n"
        f"  errors: {config.paths.errors}\n"
        f"  log level: {config.logging.level}\n"
        f"  console level: {config.logging.console_level}\n"
        "HTTP\n"
        f"  timeout_ms: {config.http.timeout_ms}\n"
        f"  user_agent: {config.http.user_agent or 'default'}\n"
        "TTS\n"
        f"  model: {config.tts.model_id}\n"
        f"  onnx_model_file: {config.tts.onnx_model_file}\n"
        f"  onnx_voices_file: {config.tts.onnx_voices_file}\n"
        f"  voice: {config.tts.voice}\n"
        f"  lang_code: {config.tts.lang_code}\n"
        f"  speed: {config.tts.speed}\n"
        f"  sample_rate: {config.tts.sample_rate}\n"
        f"  segment_limit: {config.tts.segment_limit}\n"
        f"  execution_provider: {config.tts.execution_provider}\n"
        "Download\n"
        f"  concurrency: {config.download.concurrency}"
    )


def _read_toml(path: Path) -> Mapping[str, Any]:
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _resolve_path(base_dir: Path, value: Any) -> Path:
    path = value if isinstance(value, Path) else Path(str(value))
    return path if path.is_absolute() else base_dir / path


def _deep_merge(base: Mapping[str, Any], updates: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        cleaned = value.strip()
        if not cleaned or cleaned.lower() in {"none", "null"}:
            return None
        return cleaned
    return str(value)
