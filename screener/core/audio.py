"""Audio chunks and PCM/WAV conversion."""

import wave
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np
from scipy import signal


SAMPLE_RATE = 16000  # Hz, what the transcription engine expects
SAMPLE_WIDTH = 2  # 16-bit PCM


@dataclass(frozen=True, eq=False)
class AudioChunk:
    """
    One fixed-duration slice of call audio.

    Samples are signed 16-bit mono PCM. A chunk is created, analyzed and
    discarded within one iteration of the analysis loop.
    """
    samples: np.ndarray
    sample_rate: int = SAMPLE_RATE

    def __post_init__(self):
        samples = np.asarray(self.samples)
        if samples.ndim != 1:
            raise ValueError(f"AudioChunk must be mono, got shape {samples.shape}")
        samples = samples.astype(np.int16, copy=True)
        samples.setflags(write=False)
        object.__setattr__(self, "samples", samples)

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def duration_ms(self) -> float:
        """Duration in milliseconds."""
        return len(self.samples) * 1000.0 / self.sample_rate

    @property
    def is_empty(self) -> bool:
        return len(self.samples) == 0

    @classmethod
    def from_pcm_bytes(cls, data: bytes, sample_rate: int = SAMPLE_RATE) -> "AudioChunk":
        """
        Build a chunk from little-endian signed 16-bit PCM bytes.

        A trailing odd byte is dropped.
        """
        usable = len(data) - (len(data) % SAMPLE_WIDTH)
        samples = np.frombuffer(data[:usable], dtype="<i2")
        return cls(samples=samples, sample_rate=sample_rate)

    @classmethod
    def from_float(cls, samples: np.ndarray, sample_rate: int = SAMPLE_RATE) -> "AudioChunk":
        """Build a chunk from float samples normalized to [-1.0, 1.0]."""
        clipped = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
        return cls(samples=np.round(clipped * 32767).astype(np.int16), sample_rate=sample_rate)

    def to_pcm_bytes(self) -> bytes:
        """Little-endian signed 16-bit PCM bytes."""
        return self.samples.astype("<i2").tobytes()


def resample(samples: np.ndarray, from_rate: int, to_rate: int) -> np.ndarray:
    """
    Resample float audio between sample rates.

    Args:
        samples: Float samples
        from_rate: Source sample rate in Hz
        to_rate: Target sample rate in Hz

    Returns:
        Resampled float samples
    """
    if from_rate == to_rate or len(samples) == 0:
        return samples
    divisor = np.gcd(int(from_rate), int(to_rate))
    return signal.resample_poly(samples, to_rate // divisor, from_rate // divisor)


def save_wav(
    samples: np.ndarray,
    filepath: Union[str, Path],
    sample_rate: int = SAMPLE_RATE,
) -> None:
    """
    Save float audio samples to a 16-bit mono WAV file.

    Args:
        samples: Audio samples (float array, normalized to [-1, 1])
        filepath: Output file path
        sample_rate: Sample rate in Hz
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    int_samples = (np.clip(samples, -1.0, 1.0) * 32767).astype(np.int16)

    with wave.open(str(filepath), 'wb') as wav:
        wav.setnchannels(1)  # Mono
        wav.setsampwidth(SAMPLE_WIDTH)
        wav.setframerate(sample_rate)
        wav.writeframes(int_samples.astype("<i2").tobytes())


def load_wav(filepath: Union[str, Path]) -> tuple[np.ndarray, int]:
    """
    Load audio samples from a WAV file.

    Stereo files are mixed down to mono.

    Args:
        filepath: Input file path

    Returns:
        Tuple of (samples as float array, sample rate)
    """
    with wave.open(str(filepath), 'rb') as wav:
        sample_rate = wav.getframerate()
        sample_width = wav.getsampwidth()
        channels = wav.getnchannels()
        raw_data = wav.readframes(wav.getnframes())

    if sample_width == 2:
        samples = np.frombuffer(raw_data, dtype="<i2").astype(np.float32) / 32768.0
    elif sample_width == 1:
        samples = (np.frombuffer(raw_data, dtype=np.uint8).astype(np.float32) - 128.0) / 128.0
    else:
        raise ValueError(f"Unsupported sample width: {sample_width}")

    if channels > 1:
        samples = samples.reshape(-1, channels).mean(axis=1)

    return samples, sample_rate


def load_wav_resampled(filepath: Union[str, Path], sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """Load a WAV file as float samples at the given sample rate."""
    samples, file_rate = load_wav(filepath)
    return resample(samples, file_rate, sample_rate)
