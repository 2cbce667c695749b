"""Ordered PCM queue that plays as one continuous audio source.

The producer side appends synthesized segments while the consumer side is
pulled synchronously by an audio sink. When the producer falls behind, the
consumer pads with short runs of silence instead of blocking.
"""

from __future__ import annotations

import asyncio
from collections import deque
import contextlib
from dataclasses import dataclass
import threading

import numpy as np

from .errors import NoMoreSegments

THRESHOLD = 512
DEFAULT_SAMPLE_RATE = 24000


@dataclass(frozen=True)
class SamplesBuffer:
    """Interleaved float32 samples with their stream parameters."""

    channels: int
    sample_rate: int
    samples: np.ndarray

    def __post_init__(self) -> None:
        object.__setattr__(self, "samples", np.asarray(self.samples, dtype=np.float32).reshape(-1))

    def __len__(self) -> int:
        return int(self.samples.shape[0])

    def __iter__(self):
        return iter(self.samples.tolist())

    @property
    def duration(self) -> float:
        return len(self) / float(self.sample_rate * self.channels)


class Silence(SamplesBuffer):
    """A fixed-length run of zero samples."""

    def __init__(self, channels: int, sample_rate: int, count: int = THRESHOLD) -> None:
        super().__init__(channels, sample_rate, np.zeros(count, dtype=np.float32))


class SegmentSignal:
    """Receiver for the two playback events of one queued segment.

    The consumer sends ``False`` when the segment starts and ``True`` when it
    ends. Sends may come from the audio thread; waiters on the event loop
    that created the signal are woken through ``call_soon_threadsafe``.
    Sends after the loop has gone away are dropped.
    """

    capacity = 2

    def __init__(self) -> None:
        self._events: deque[bool] = deque()
        self._lock = threading.Lock()
        self._sent = 0
        self._ready = asyncio.Event()
        try:
            self._loop: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None

    @property
    def exhausted(self) -> bool:
        with self._lock:
            return self._sent >= self.capacity and not self._events

    def send(self, finished: bool) -> None:
        with self._lock:
            if self._sent >= self.capacity:
                return
            self._sent += 1
            self._events.append(finished)

        loop = self._loop
        if loop is None:
            self._ready.set()
            return
        if loop.is_closed():
            return
        with contextlib.suppress(RuntimeError):
            loop.call_soon_threadsafe(self._ready.set)

    def try_recv(self) -> bool | None:
        with self._lock:
            if self._events:
                return self._events.popleft()
            return None

    async def recv(self) -> bool | None:
        """Wait for the next event; ``None`` once both events were consumed."""
        while True:
            event = self.try_recv()
            if event is not None:
                return event
            if self.exhausted:
                return None
            self._ready.clear()
            event = self.try_recv()
            if event is not None:
                return event
            await self._ready.wait()


class AudioQueueInput:
    """Producer handle: append segments and mark the end of the stream."""

    def __init__(self) -> None:
        self._sounds: list[tuple[SamplesBuffer, SegmentSignal | None]] = []
        self._lock = threading.Lock()
        self._finished = threading.Event()

    def append(self, buffer: SamplesBuffer) -> None:
        with self._lock:
            self._sounds.append((buffer, None))

    def append_with_signal(self, buffer: SamplesBuffer) -> SegmentSignal:
        signal = SegmentSignal()
        with self._lock:
            self._sounds.append((buffer, signal))
        return signal

    def set_finished(self, finished: bool = True) -> None:
        if finished:
            self._finished.set()
        else:
            self._finished.clear()

    def is_finished(self) -> bool:
        return self._finished.is_set()

    def get(self, index: int) -> tuple[SamplesBuffer, SegmentSignal | None] | None:
        with self._lock:
            if 0 <= index < len(self._sounds):
                return self._sounds[index]
            return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sounds)


class AudioQueueOutput:
    """Consumer handle: a synchronous sample iterator over the queued segments.

    Each segment is played in full before the next one starts. While the next
    segment is missing and the producer is still running, ``THRESHOLD`` zero
    samples are emitted at a time. Once the producer has finished and every
    segment was played, the iterator stops for good.
    """

    total_duration = None

    def __init__(
        self,
        queue_input: AudioQueueInput,
        index: int = 0,
        *,
        silence_channels: int = 1,
        silence_sample_rate: int = DEFAULT_SAMPLE_RATE,
    ) -> None:
        self._input = queue_input
        self._silence_channels = silence_channels
        self._silence_sample_rate = silence_sample_rate
        self._terminal = False
        self._position = 0
        self.index = index

        entry = queue_input.get(index)
        if entry is not None:
            self._current, self._signal = entry
            self.is_initial = False
            if self._signal is not None:
                self._signal.send(False)
        else:
            self._current = self._silence()
            self._signal = None
            self.is_initial = True

    @property
    def channels(self) -> int:
        return self._current.channels

    @property
    def sample_rate(self) -> int:
        return self._current.sample_rate

    @property
    def playing_silence(self) -> bool:
        return isinstance(self._current, Silence)

    @property
    def finished(self) -> bool:
        return self._terminal

    def current_span_len(self) -> int:
        """Samples left in the current run, or ``THRESHOLD`` at a boundary."""
        remaining = len(self._current) - self._position
        if remaining > 0:
            return remaining
        return THRESHOLD

    def __iter__(self) -> "AudioQueueOutput":
        return self

    def __next__(self) -> float:
        chunk = self._take(1)
        if chunk is None:
            raise StopIteration
        return float(chunk[0])

    def read(self, count: int) -> np.ndarray:
        """Pull up to ``count`` samples; fewer only when the stream has ended."""
        chunks: list[np.ndarray] = []
        needed = count
        while needed > 0:
            chunk = self._take(needed)
            if chunk is None:
                break
            chunks.append(chunk)
            needed -= chunk.shape[0]
        if not chunks:
            return np.zeros(0, dtype=np.float32)
        return np.concatenate(chunks)

    def read_span(self) -> np.ndarray | None:
        """Pull samples from a single run only; ``playing_silence`` describes them.

        Returns ``None`` once the stream has ended.
        """
        return self._take(self.current_span_len())

    def _take(self, limit: int) -> np.ndarray | None:
        while True:
            if self._terminal:
                return None
            remaining = len(self._current) - self._position
            if remaining > 0:
                size = min(limit, remaining)
                chunk = self._current.samples[self._position : self._position + size]
                self._position += size
                return chunk
            try:
                self.go_next()
            except NoMoreSegments:
                return None

    def go_next(self) -> None:
        """Finish the current run and move to the next segment or to silence."""
        if self._terminal:
            raise NoMoreSegments("Audio queue has ended")

        if self._signal is not None:
            self._signal.send(True)
            self._signal = None

        next_index = self.index if self.is_initial else self.index + 1
        entry = self._input.get(next_index)
        if entry is not None:
            self._current, self._signal = entry
            self.index = next_index
            self.is_initial = False
        elif self._input.is_finished():
            self._terminal = True
            raise NoMoreSegments("No more segments in the queue")
        else:
            self._current = self._silence()
        self._position = 0

        if self._signal is not None:
            self._signal.send(False)

    def _silence(self) -> Silence:
        return Silence(self._silence_channels, self._silence_sample_rate, THRESHOLD)


def audio_queue(
    *,
    silence_channels: int = 1,
    silence_sample_rate: int = DEFAULT_SAMPLE_RATE,
) -> tuple[AudioQueueInput, AudioQueueOutput]:
    queue_input = AudioQueueInput()
    output = AudioQueueOutput(
        queue_input,
        0,
        silence_channels=silence_channels,
        silence_sample_rate=silence_sample_rate,
    )
    return queue_input, output
