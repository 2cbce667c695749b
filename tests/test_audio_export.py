from __future__ import annotations

import asyncio
from pathlib import Path
import wave

import numpy as np

from trnovel.audio_export import drain_to_wav, export_stream, write_wav
from trnovel.audio_queue import SamplesBuffer, audio_queue
from trnovel.chapter_tts import ChapterTTS


def _read_wav(path: Path) -> tuple[int, int, np.ndarray]:
    with wave.open(str(path), "rb") as handle:
        frames = handle.readframes(handle.getnframes())
        return handle.getframerate(), handle.getnchannels(), np.frombuffer(frames, dtype="<i2")


def test_write_wav_clips_to_pcm16(tmp_path: Path) -> None:
    path = write_wav(tmp_path / "nested" / "a.wav", np.array([0.0, 0.5, 2.0, -2.0], dtype=np.float32), 16000)
    rate, channels, pcm = _read_wav(path)
    assert rate == 16000
    assert channels == 1
    assert pcm.tolist() == [0, 16383, 32767, -32767]


def test_drain_skips_leading_silence(tmp_path: Path) -> None:
    queue_input, output = audio_queue()
    queue_input.append(SamplesBuffer(1, 22050, np.full(300, 0.25, dtype=np.float32)))
    queue_input.append(SamplesBuffer(1, 22050, np.full(200, -0.25, dtype=np.float32)))
    queue_input.set_finished()

    result = drain_to_wav(output, tmp_path / "out.wav")
    assert result.frames == 500
    assert result.sample_rate == 22050
    assert result.duration == 500 / 22050
    rate, _, pcm = _read_wav(result.path)
    assert rate == 22050
    assert pcm.size == 500
    assert (pcm[:300] > 0).all()
    assert (pcm[300:] < 0).all()


def test_drain_of_empty_stream_writes_empty_file(tmp_path: Path) -> None:
    queue_input, output = audio_queue(silence_sample_rate=24000)
    queue_input.set_finished()
    result = drain_to_wav(output, tmp_path / "empty.wav")
    assert result.frames == 0
    rate, _, pcm = _read_wav(result.path)
    assert rate == 24000
    assert pcm.size == 0


class ToneSynthesizer:
    sample_rate = 24000

    async def synth(self, text: str, voice: str | None = None) -> tuple[np.ndarray, float]:
        await asyncio.sleep(0.001)
        return np.full(240, 0.5, dtype=np.float32), 0.01


def test_export_stream_reports_positions(tmp_path: Path) -> None:
    async def scenario():
        chapter = ChapterTTS(ToneSynthesizer(), "一。\n二。\n三。")
        output, positions = chapter.stream()
        seen: list[int] = []
        result = await export_stream(output, tmp_path / "chapter.wav", positions, seen.append)
        await chapter.aclose()
        return result, seen

    result, seen = asyncio.run(scenario())
    assert seen == [0, 1, 2, 3]
    assert result.frames == 720
    assert result.sample_rate == 24000
