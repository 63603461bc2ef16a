"""Shared fixtures: synthetic audio and fake call collaborators."""

import threading
import time
from typing import Optional

import numpy as np
import pytest

from screener.core.audio import SAMPLE_RATE, AudioChunk
from screener.core.errors import CaptureError, TranscriptionError
from screener.core.provider import AudioChunkSource
from screener.core.transcription import ScriptedTranscriptionEngine


def sine_samples(freq: float, seconds: float = 2.0, amplitude: float = 32767.0) -> np.ndarray:
    t = np.arange(int(SAMPLE_RATE * seconds)) / SAMPLE_RATE
    return amplitude * np.sin(2 * np.pi * freq * t)


def sine_chunk(freq: float, seconds: float = 2.0, amplitude: float = 32767.0) -> AudioChunk:
    return AudioChunk(np.round(sine_samples(freq, seconds, amplitude)).astype(np.int16))


def noise_chunk(seed: int = 0, seconds: float = 2.0, level: float = 1000.0) -> AudioChunk:
    """Low-level white noise: audible, but neither a tone nor an onset."""
    rng = np.random.default_rng(seed)
    samples = rng.normal(0.0, level, int(SAMPLE_RATE * seconds))
    return AudioChunk(np.clip(samples, -32768, 32767).astype(np.int16))


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float):
        self.now += ms / 1000.0


class FakeSource(AudioChunkSource):
    """Serves noise chunks, advancing a fake clock by each chunk's duration.

    Args:
        clock: FakeClock to advance (optional)
        chunks: Explicit chunks to serve first, noise afterwards
        fail_on_start: Raise CaptureError from start()
        fail_at: 1-based capture call that raises CaptureError
        delay_s: Real seconds each capture blocks for
    """

    def __init__(
        self,
        clock: Optional[FakeClock] = None,
        chunks=(),
        fail_on_start: bool = False,
        fail_at: Optional[int] = None,
        delay_s: float = 0.0,
    ):
        self.clock = clock
        self.chunks = list(chunks)
        self.fail_on_start = fail_on_start
        self.fail_at = fail_at
        self.delay_s = delay_s
        self.captures = 0
        self.started = False
        self.stopped = False
        self.captured_event = threading.Event()

    def start(self) -> None:
        if self.fail_on_start:
            raise CaptureError("microphone unavailable")
        self.started = True

    def capture_chunk(self, duration_ms: int) -> AudioChunk:
        self.captures += 1
        if self.fail_at is not None and self.captures >= self.fail_at:
            raise CaptureError("audio route lost")
        if self.delay_s:
            time.sleep(self.delay_s)
        if self.clock is not None:
            self.clock.advance_ms(duration_ms)
        self.captured_event.set()

        if self.captures <= len(self.chunks):
            return self.chunks[self.captures - 1]
        return noise_chunk(seed=self.captures, seconds=duration_ms / 1000)

    def stop(self) -> None:
        self.stopped = True


class RecordingEngine(ScriptedTranscriptionEngine):
    """Scripted engine that counts calls and can fail on given calls (1-based)."""

    def __init__(self, fragments=(), fail_on=()):
        super().__init__(fragments)
        self.fail_on = set(fail_on)
        self.calls = 0
        self.initialize()

    def transcribe(self, chunk: AudioChunk) -> Optional[str]:
        self.calls += 1
        if self.calls in self.fail_on:
            raise TranscriptionError("recognizer crashed")
        return super().transcribe(chunk)


@pytest.fixture
def clock():
    return FakeClock()
