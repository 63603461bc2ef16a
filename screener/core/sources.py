"""Concrete audio chunk sources."""

import logging
import wave
from pathlib import Path
from typing import Optional, Union

import numpy as np

from .audio import SAMPLE_RATE, AudioChunk, load_wav_resampled
from .errors import CaptureError
from .provider import AudioChunkSource

logger = logging.getLogger(__name__)


class WavFileChunkSource(AudioChunkSource):
    """Plays back a WAV file as a sequence of fixed-duration chunks.

    The file is resampled to 16 kHz on start(). Once the file is
    exhausted, capture_chunk() returns empty chunks.
    """

    def __init__(self, filepath: Union[str, Path], sample_rate: int = SAMPLE_RATE):
        """
        Initialize source.

        Args:
            filepath: Path to a 8- or 16-bit PCM WAV file
            sample_rate: Rate chunks are delivered at
        """
        self.filepath = Path(filepath)
        self.sample_rate = sample_rate
        self._samples: Optional[np.ndarray] = None
        self._position = 0
        self._played_ms = 0

    @property
    def playback_s(self) -> float:
        """Seconds of audio requested so far, counting past the end of the file."""
        return self._played_ms / 1000.0

    def start(self) -> None:
        try:
            self._samples = load_wav_resampled(self.filepath, self.sample_rate)
        except (OSError, EOFError, ValueError, wave.Error) as e:
            raise CaptureError(f"Cannot read {self.filepath}: {e}") from e
        self._position = 0
        self._played_ms = 0
        logger.debug(
            f"Playing {self.filepath.name}: {len(self._samples) / self.sample_rate:.1f}s of audio"
        )

    def capture_chunk(self, duration_ms: int) -> AudioChunk:
        if self._samples is None:
            raise CaptureError("Source not started")

        count = int(self.sample_rate * duration_ms / 1000)
        end = min(self._position + count, len(self._samples))
        window = self._samples[self._position:end]
        self._position = end
        self._played_ms += duration_ms
        return AudioChunk.from_float(window, self.sample_rate)

    def stop(self) -> None:
        self._samples = None
        self._position = 0


class ArrayChunkSource(AudioChunkSource):
    """Serves pre-built chunks in order, then empty chunks.

    Useful for replaying captured audio and for tests.
    """

    def __init__(self, chunks, sample_rate: int = SAMPLE_RATE):
        self.chunks = list(chunks)
        self.sample_rate = sample_rate
        self._index = 0
        self.started = False
        self.stopped = False

    def start(self) -> None:
        self._index = 0
        self.started = True

    def capture_chunk(self, duration_ms: int) -> AudioChunk:
        if not self.started:
            raise CaptureError("Source not started")
        if self._index >= len(self.chunks):
            return AudioChunk(np.zeros(0, dtype=np.int16), self.sample_rate)
        chunk = self.chunks[self._index]
        self._index += 1
        if not isinstance(chunk, AudioChunk):
            chunk = AudioChunk(np.asarray(chunk), self.sample_rate)
        return chunk

    def stop(self) -> None:
        self.stopped = True
