"""Write chapter audio to WAV files."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from pathlib import Path
import time
from typing import Callable
import wave

import numpy as np

from .audio_queue import AudioQueueOutput
from .chapter_tts import PositionReceiver
from .utils import ensure_dir

_LOGGER = logging.getLogger(__name__)

# Pause between silence runs while the producer catches up.
SILENCE_POLL_SECONDS = 0.01


@dataclass(frozen=True)
class ExportResult:
    path: Path
    frames: int
    sample_rate: int
    channels: int

    @property
    def duration(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.frames / float(self.sample_rate)


def write_wav(path: Path, samples: np.ndarray, sample_rate: int, channels: int = 1) -> Path:
    pcm = _float_to_pcm16(samples)
    ensure_dir(path.parent)
    with wave.open(str(path), "wb") as handle:
        handle.setnchannels(max(1, channels))
        handle.setsampwidth(2)
        handle.setframerate(sample_rate)
        handle.writeframes(pcm)
    return path


def drain_to_wav(output: AudioQueueOutput, path: Path) -> ExportResult:
    """Consume ``output`` until it ends, writing every non-silent run to ``path``.

    Blocking; the silence the queue inserts while waiting for synthesis is
    dropped, so the file holds the segments back to back.
    """
    ensure_dir(path.parent)
    handle: wave.Wave_write | None = None
    channels = output.channels
    sample_rate = output.sample_rate
    written = 0
    try:
        while True:
            chunk = output.read_span()
            if chunk is None:
                break
            if output.playing_silence:
                time.sleep(SILENCE_POLL_SECONDS)
                continue
            if handle is None:
                channels = output.channels
                sample_rate = output.sample_rate
                handle = _open_wav(path, channels, sample_rate)
            handle.writeframes(_float_to_pcm16(chunk))
            written += int(chunk.shape[0])
        if handle is None:
            handle = _open_wav(path, channels, sample_rate)
    finally:
        if handle is not None:
            handle.close()

    frames = written // max(1, channels)
    _LOGGER.info("Wrote %s (%.1fs)", path, frames / float(sample_rate or 1))
    return ExportResult(path=path, frames=frames, sample_rate=sample_rate, channels=channels)


async def export_stream(
    output: AudioQueueOutput,
    path: Path,
    positions: PositionReceiver | None = None,
    on_position: Callable[[int], None] | None = None,
) -> ExportResult:
    """Drain ``output`` in a worker thread while following playback positions."""
    writer = asyncio.to_thread(drain_to_wav, output, path)
    if positions is None:
        return await writer

    async def follow() -> None:
        async for index in positions:
            if on_position is not None:
                on_position(index)

    result, _ = await asyncio.gather(writer, follow())
    return result


def _open_wav(path: Path, channels: int, sample_rate: int) -> wave.Wave_write:
    handle = wave.open(str(path), "wb")
    handle.setnchannels(max(1, channels))
    handle.setsampwidth(2)
    handle.setframerate(sample_rate)
    return handle


def _float_to_pcm16(samples: np.ndarray) -> bytes:
    clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    return (clipped * 32767).astype("<i2").tobytes()
