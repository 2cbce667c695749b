"""Kokoro ONNX synthesizer used to voice chapters."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
from pathlib import Path
import platform
import re
import threading
import time

import numpy as np

from .config import Config
from .errors import SynthError, TtsInputError, TtsModelError

_LOGGER = logging.getLogger(__name__)

DEFAULT_MODEL_ID = "fastrtc/kokoro-onnx"
DEFAULT_MODEL_FILE = "kokoro-v1.0.onnx"
DEFAULT_VOICES_FILE = "voices-v1.0.bin"
DEFAULT_VOICE = "zf_xiaobei"
DEFAULT_LANG = "cmn"


@dataclass
class KokoroOnnxSynthesizer:
    """Run Kokoro through onnxruntime and return mono float32 samples.

    Model and voice files are local paths when they exist, otherwise they are
    fetched from the Hugging Face repo ``model_id``. The runtime is loaded on
    first use and shared by every call; inference runs in a worker thread so
    the event loop keeps feeding the audio queue.
    """

    model_id: str = DEFAULT_MODEL_ID
    onnx_model_file: str = DEFAULT_MODEL_FILE
    onnx_voices_file: str = DEFAULT_VOICES_FILE
    voice: str = DEFAULT_VOICE
    lang_code: str = DEFAULT_LANG
    speed: float = 1.0
    sample_rate: int = 24000
    execution_provider: str = "auto"

    _kokoro: object | None = field(default=None, init=False, repr=False)
    _provider_chain: tuple[str, ...] = field(default=tuple(), init=False, repr=False)
    _load_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def ensure_loaded(self) -> None:
        with self._load_lock:
            if self._kokoro is not None:
                return

            try:
                from kokoro_onnx import Kokoro  # type: ignore
            except ImportError as exc:
                raise TtsModelError(
                    "kokoro-onnx is not installed. Install with `pip install -e '.[tts-kokoro]'`."
                ) from exc

            model_path = self._resolve_asset(self.onnx_model_file)
            voices_path = self._resolve_asset(self.onnx_voices_file)
            providers = resolve_onnx_provider_chain(self.execution_provider)
            self._provider_chain = tuple(providers)

            try:
                self._kokoro = _build_kokoro_runtime(Kokoro, model_path, voices_path, providers)
            except Exception as exc:  # pragma: no cover - runtime dependency
                raise TtsModelError(f"Failed to initialize kokoro-onnx runtime: {exc}") from exc
            _LOGGER.info(
                "Loaded Kokoro ONNX model %s (%s).",
                model_path.name,
                ", ".join(self._provider_chain),
            )

    def runtime_info(self) -> dict[str, object]:
        return {
            "engine": "kokoro_onnx",
            "model_id": self.model_id,
            "requested_execution_provider": self.execution_provider,
            "resolved_providers": list(self._provider_chain),
            "voice": self.voice,
            "lang_code": self.lang_code,
        }

    async def synth(self, text: str, voice: str | None = None) -> tuple[np.ndarray, float]:
        return await asyncio.to_thread(self.synth_blocking, text, voice)

    def synth_blocking(self, text: str, voice: str | None = None) -> tuple[np.ndarray, float]:
        text = text or ""
        if not _is_speakable_text(text):
            raise TtsInputError(text, "Input text is empty or contains no speakable content.")

        self.ensure_loaded()
        started = time.perf_counter()
        try:
            samples, rate = self._kokoro.create(  # type: ignore[union-attr]
                text,
                voice=voice or self.voice,
                speed=self.speed,
                lang=self.lang_code,
            )
        except Exception as exc:  # pragma: no cover - runtime dependency
            raise SynthError(text, exc) from exc
        elapsed = time.perf_counter() - started

        audio = np.asarray(samples, dtype=np.float32).reshape(-1)
        if audio.size == 0:
            raise SynthError(text, "Kokoro synthesis returned empty audio.")
        if rate and int(rate) != self.sample_rate:
            _LOGGER.warning(
                "Kokoro produced %d Hz audio; configured rate is %d Hz.", int(rate), self.sample_rate
            )
        return audio, elapsed

    def _resolve_asset(self, filename: str) -> Path:
        local = Path(filename).expanduser()
        if local.exists():
            return local

        try:
            from huggingface_hub import hf_hub_download  # type: ignore
        except ImportError as exc:
            raise TtsModelError(
                "huggingface_hub is required to download Kokoro assets. "
                "Install with `pip install -e '.[tts-kokoro]'`."
            ) from exc

        try:
            return Path(hf_hub_download(repo_id=self.model_id, filename=filename))
        except Exception as exc:  # pragma: no cover - depends on network/cache state
            raise TtsModelError(
                f"Failed to download {filename} from Hugging Face repo {self.model_id}: {exc}"
            ) from exc


def build_synthesizer(config: Config) -> KokoroOnnxSynthesizer:
    tts = config.tts
    return KokoroOnnxSynthesizer(
        model_id=tts.model_id,
        onnx_model_file=tts.onnx_model_file,
        onnx_voices_file=tts.onnx_voices_file,
        voice=tts.voice,
        lang_code=tts.lang_code,
        speed=tts.speed,
        sample_rate=tts.sample_rate,
        execution_provider=tts.execution_provider,
    )


def get_available_onnx_providers() -> list[str]:
    try:
        import onnxruntime as ort  # type: ignore
    except ImportError:
        return []
    return list(ort.get_available_providers())


def resolve_onnx_provider_chain(
    requested: str,
    *,
    available: list[str] | None = None,
    platform_name: str | None = None,
) -> list[str]:
    """Explicit comma-separated providers win; ``auto`` picks from what onnxruntime offers."""
    value = (requested or "auto").strip()
    providers = list(available) if available is not None else get_available_onnx_providers()
    system = (platform_name or platform.system()).lower()

    if value and value.lower() != "auto":
        parts = [part.strip() for part in value.split(",") if part.strip()]
        if parts:
            return parts
    return _default_chain(providers, system)


def _default_chain(available: list[str], platform_name: str) -> list[str]:
    if not available:
        return ["CPUExecutionProvider"]

    if platform_name == "linux":
        return ["CPUExecutionProvider"] if "CPUExecutionProvider" in available else [available[0]]

    preferred = [
        "CoreMLExecutionProvider",
        "CUDAExecutionProvider",
        "DmlExecutionProvider",
        "CPUExecutionProvider",
    ]
    selected = [provider for provider in preferred if provider in available]
    return selected or ["CPUExecutionProvider"]


def _build_kokoro_runtime(
    kokoro_cls: type,
    model_path: Path,
    voices_path: Path,
    providers: list[str],
) -> object:
    from_session = getattr(kokoro_cls, "from_session", None)
    if callable(from_session):
        import onnxruntime as ort  # type: ignore

        session = ort.InferenceSession(str(model_path), providers=providers)
        return from_session(session, str(voices_path))
    return kokoro_cls(str(model_path), str(voices_path))


def _is_speakable_text(text: str) -> bool:
    stripped = text.strip()
    if not stripped:
        return False
    if re.fullmatch(r"[\W_]+", stripped):
        return False
    return True
