"""Streaming text-to-speech for one chapter with resumable playback position."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

import numpy as np

from .audio_queue import AudioQueueInput, AudioQueueOutput, SamplesBuffer, SegmentSignal, audio_queue
from .errors import SynthError
from .interfaces import Synthesizer, TextSegment, TextSegmenter
from .text_segmenter import DEFAULT_SEGMENT_LIMIT, PunctuationTextSegmenter

_LOGGER = logging.getLogger(__name__)

ErrorCallback = Callable[[SynthError], None]


class PositionReceiver:
    """Playback positions of a chapter stream.

    Yields the index of the first segment when it starts playing, then the
    next index each time a segment finishes. ``None`` marks the end of the
    chapter; async iteration stops there.
    """

    def __init__(self, queue: asyncio.Queue[int | None]) -> None:
        self._queue = queue
        self._closed = False

    async def recv(self) -> int | None:
        if self._closed:
            return None
        value = await self._queue.get()
        if value is None:
            self._closed = True
        return value

    def try_recv(self) -> int | None:
        if self._closed or self._queue.empty():
            return None
        value = self._queue.get_nowait()
        if value is None:
            self._closed = True
        return value

    def __aiter__(self) -> "PositionReceiver":
        return self

    async def __anext__(self) -> int:
        value = await self.recv()
        if value is None:
            raise StopAsyncIteration
        return value


class ChapterTTS:
    """Synthesize a chapter segment by segment into an `AudioQueueOutput`.

    ``active_index`` is the segment due to play next. It only moves when a
    segment finishes playing, so calling `stream` again after `cancel`
    resumes at the sentence that was interrupted.
    """

    def __init__(
        self,
        synthesizer: Synthesizer,
        text: str,
        limit: int = DEFAULT_SEGMENT_LIMIT,
        *,
        segmenter: TextSegmenter | None = None,
    ) -> None:
        self.synthesizer = synthesizer
        segmenter = segmenter or PunctuationTextSegmenter(limit)
        self.texts: tuple[TextSegment, ...] = tuple(segmenter.segment(text))
        self.segments: list[SamplesBuffer] = []
        self.active_index = 0
        self._lock = asyncio.Lock()
        self._cancel_event: asyncio.Event | None = None
        self._producer: asyncio.Task[None] | None = None
        self._waiters: set[asyncio.Task[None]] = set()

    def __len__(self) -> int:
        return len(self.texts)

    def text_at(self, index: int) -> str:
        return self.texts[index].text

    def stream(
        self,
        voice: str | None = None,
        on_error: ErrorCallback | None = None,
    ) -> tuple[AudioQueueOutput, PositionReceiver]:
        """Start a producer from ``active_index`` and return the audio and position handles.

        Must be called from a running event loop. A producer left over from a
        previous call is stopped first.
        """
        loop = asyncio.get_running_loop()
        self._stop_tasks()

        cancel_event = asyncio.Event()
        self._cancel_event = cancel_event
        queue_input, output = audio_queue(silence_sample_rate=self.synthesizer.sample_rate)
        positions: asyncio.Queue[int | None] = asyncio.Queue(maxsize=1)

        self._producer = loop.create_task(
            self._produce(voice, on_error, queue_input, positions, cancel_event),
            name="chapter-tts-producer",
        )
        return output, PositionReceiver(positions)

    def cancel(self) -> None:
        """Stop synthesizing new segments; queued audio keeps playing."""
        if self._cancel_event is not None:
            self._cancel_event.set()

    async def reset(self, index: int = 0) -> None:
        """Stop any producer and move the playback position to ``index``."""
        if not 0 <= index <= len(self.texts):
            raise IndexError(f"Segment index {index} out of range")
        await self.aclose()
        async with self._lock:
            self.active_index = index

    async def aclose(self) -> None:
        self.cancel()
        tasks = self._stop_tasks()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _stop_tasks(self) -> list[asyncio.Task[None]]:
        if self._cancel_event is not None:
            self._cancel_event.set()
        tasks = list(self._waiters)
        if self._producer is not None:
            tasks.append(self._producer)
            self._producer = None
        for task in tasks:
            task.cancel()
        self._waiters.clear()
        return tasks

    async def _produce(
        self,
        voice: str | None,
        on_error: ErrorCallback | None,
        queue_input: AudioQueueInput,
        positions: asyncio.Queue[int | None],
        cancel_event: asyncio.Event,
    ) -> None:
        async with self._lock:
            self.segments.clear()
            start = self.active_index

        waiters: list[asyncio.Task[None]] = []
        try:
            for index in range(start, len(self.texts)):
                if cancel_event.is_set():
                    break
                text = self.texts[index].text
                try:
                    samples = await self._synth_unless_cancelled(text, voice, cancel_event)
                except SynthError as exc:
                    _LOGGER.warning("Segment %d failed: %s", index, exc)
                    if on_error is not None:
                        on_error(exc)
                    continue
                if samples is None:
                    _LOGGER.info("Chapter synthesis cancelled at segment %d", index)
                    break

                buffer = SamplesBuffer(1, self.synthesizer.sample_rate, samples)
                signal = queue_input.append_with_signal(buffer)
                async with self._lock:
                    self.segments.append(buffer)

                waiter = asyncio.create_task(
                    self._watch(signal, index, not waiters, positions),
                    name=f"chapter-tts-segment-{index}",
                )
                waiters.append(waiter)
                self._waiters.add(waiter)
                waiter.add_done_callback(self._waiters.discard)
        finally:
            queue_input.set_finished(True)

        if waiters:
            await asyncio.gather(*waiters)
        await positions.put(None)

    async def _synth_unless_cancelled(
        self,
        text: str,
        voice: str | None,
        cancel_event: asyncio.Event,
    ) -> np.ndarray | None:
        synth_task = asyncio.ensure_future(self.synthesizer.synth(text, voice))
        cancel_task = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {synth_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            cancel_task.cancel()
            if not synth_task.done():
                synth_task.cancel()

        if synth_task not in done:
            return None
        try:
            samples, elapsed = synth_task.result()
        except SynthError:
            raise
        except Exception as exc:
            raise SynthError(text, exc) from exc
        _LOGGER.debug("Synthesized %d samples in %.2fs", len(samples), elapsed)
        return samples

    async def _watch(
        self,
        signal: SegmentSignal,
        index: int,
        announce_start: bool,
        positions: asyncio.Queue[int | None],
    ) -> None:
        while True:
            finished = await signal.recv()
            if finished is None:
                return
            if not finished:
                if announce_start:
                    await positions.put(index)
                continue
            async with self._lock:
                self.active_index = index + 1
                position = self.active_index
            await positions.put(position)
