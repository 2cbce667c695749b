from __future__ import annotations

import asyncio

import numpy as np
import pytest

from trnovel.audio_queue import (
    THRESHOLD,
    AudioQueueInput,
    AudioQueueOutput,
    SamplesBuffer,
    SegmentSignal,
    Silence,
    audio_queue,
)


def _buffer(count: int, value: float = 0.5, sample_rate: int = 24000) -> SamplesBuffer:
    return SamplesBuffer(1, sample_rate, np.full(count, value, dtype=np.float32))


def test_samples_buffer_normalizes_samples() -> None:
    buffer = SamplesBuffer(2, 16000, [[0.1, 0.2], [0.3, 0.4]])
    assert buffer.samples.dtype == np.float32
    assert len(buffer) == 4
    assert buffer.duration == pytest.approx(4 / 32000)
    assert list(buffer) == pytest.approx([0.1, 0.2, 0.3, 0.4])


def test_silence_is_zeros() -> None:
    silence = Silence(1, 24000)
    assert len(silence) == THRESHOLD
    assert not silence.samples.any()


def test_consumer_pads_with_silence_until_a_segment_arrives() -> None:
    queue_input, output = audio_queue()
    padding = output.read(1024)
    assert padding.shape == (1024,)
    assert not padding.any()
    assert output.playing_silence

    samples = np.linspace(-1.0, 1.0, 2400, dtype=np.float32)
    queue_input.append(SamplesBuffer(1, 24000, samples))
    np.testing.assert_array_equal(output.read(2400), samples)
    assert not output.playing_silence


def test_segments_play_in_append_order() -> None:
    queue_input, output = audio_queue()
    buffers = [_buffer(700, 0.1), _buffer(300, 0.2), _buffer(1000, 0.3)]
    for buffer in buffers:
        queue_input.append_with_signal(buffer)
    queue_input.set_finished(True)

    played = output.read(5000)
    assert not played[:THRESHOLD].any()
    np.testing.assert_array_equal(
        played[THRESHOLD:], np.concatenate([buffer.samples for buffer in buffers])
    )
    assert output.finished
    assert output.read(10).size == 0
    with pytest.raises(StopIteration):
        next(output)


def test_finished_state_is_sticky() -> None:
    queue_input, output = audio_queue()
    queue_input.set_finished(True)
    assert output.read(THRESHOLD).shape == (THRESHOLD,)
    assert output.read(1).size == 0
    queue_input.append(_buffer(100))
    queue_input.set_finished(False)
    assert output.read(100).size == 0


def test_iteration_yields_floats() -> None:
    queue_input = AudioQueueInput()
    queue_input.append(SamplesBuffer(1, 8000, np.array([0.25, -0.25], dtype=np.float32)))
    queue_input.set_finished()
    output = AudioQueueOutput(queue_input, silence_sample_rate=8000)
    assert list(output) == [0.25, -0.25]


def test_current_span_len() -> None:
    queue_input, output = audio_queue()
    assert output.current_span_len() == THRESHOLD
    output.read(100)
    assert output.current_span_len() == THRESHOLD - 100
    queue_input.append(_buffer(2400))
    output.read(THRESHOLD - 100)
    assert output.current_span_len() == THRESHOLD
    output.read(1)
    assert output.current_span_len() == 2399


def test_stream_parameters_follow_current_run() -> None:
    queue_input, output = audio_queue(silence_sample_rate=22050)
    assert output.sample_rate == 22050
    assert output.channels == 1
    assert output.total_duration is None
    queue_input.append(SamplesBuffer(2, 44100, np.zeros(2048, dtype=np.float32)))
    output.read(THRESHOLD + 1)
    assert output.sample_rate == 44100
    assert output.channels == 2


def test_read_span_stays_within_one_run() -> None:
    queue_input, output = audio_queue()
    queue_input.append(_buffer(100))
    first = output.read_span()
    assert first is not None and first.shape == (THRESHOLD,)
    assert output.playing_silence
    second = output.read_span()
    assert second is not None and second.shape == (100,)
    assert not output.playing_silence
    queue_input.set_finished()
    assert output.read_span() is None


def test_signals_report_start_then_end() -> None:
    queue_input, output = audio_queue()
    first = queue_input.append_with_signal(_buffer(600))
    second = queue_input.append_with_signal(_buffer(600))
    queue_input.set_finished()

    output.read(THRESHOLD + 1)
    assert first.try_recv() is False
    assert first.try_recv() is None

    output.read(600)
    assert first.try_recv() is True
    assert second.try_recv() is False
    assert first.exhausted

    output.read(600)
    assert second.try_recv() is True
    assert second.exhausted


def test_start_signal_sent_when_first_segment_exists() -> None:
    queue_input = AudioQueueInput()
    signal = queue_input.append_with_signal(_buffer(10))
    AudioQueueOutput(queue_input)
    assert signal.try_recv() is False


def test_signal_ignores_extra_sends() -> None:
    signal = SegmentSignal()
    signal.send(False)
    signal.send(True)
    signal.send(True)
    assert signal.try_recv() is False
    assert signal.try_recv() is True
    assert signal.try_recv() is None


def test_signals_wake_async_waiters_from_audio_thread() -> None:
    async def scenario() -> list[list[bool]]:
        queue_input, output = audio_queue()
        signals = [queue_input.append_with_signal(_buffer(1000)) for _ in range(3)]
        queue_input.set_finished()

        async def collect(signal: SegmentSignal) -> list[bool]:
            events = []
            while True:
                event = await signal.recv()
                if event is None:
                    return events
                events.append(event)

        collectors = [asyncio.create_task(collect(signal)) for signal in signals]
        await asyncio.to_thread(lambda: output.read(10_000))
        return await asyncio.wait_for(asyncio.gather(*collectors), timeout=5)

    assert asyncio.run(scenario()) == [[False, True]] * 3
