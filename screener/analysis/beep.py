"""Autodialer beep and tone detection.

Two independent checks run on each audio chunk and are OR-combined:

1. Goertzel filter bank over fixed signaling frequencies (call-progress
   tones, DTMF rows and the 1 kHz test tone). Each filter's amplitude is
   normalized by the chunk RMS; a clean sustained tone normalizes to
   about sqrt(2) at its frequency and near zero elsewhere.
2. Envelope onset: mean absolute amplitude over four equal segments,
   flagging a quiet segment followed by a loud one (click-then-tone).

Any failure returns a negative result so the call is let through.
"""

import logging
from dataclasses import dataclass, field

import numpy as np
from scipy import signal

from ..core.audio import AudioChunk

logger = logging.getLogger(__name__)


# Dial tone, ringback, busy and DTMF low-group frequencies plus 1 kHz
BEEP_FREQUENCIES = (440, 480, 620, 770, 852, 941, 1000)


@dataclass
class BeepResult:
    """Result of beep detection on one chunk."""
    is_beep: bool
    energy: float  # Normalized tone energy, 0.0 to 1.0
    tone_detected: bool = False
    envelope_detected: bool = False
    magnitudes: dict[int, float] = field(default_factory=dict)  # Hz -> normalized magnitude
    reasoning: str = ""

    @classmethod
    def negative(cls, reasoning: str, energy: float = 0.0) -> "BeepResult":
        return cls(is_beep=False, energy=energy, reasoning=reasoning)


class FrequencyBeepDetector:
    """Detects autodialer tones in a chunk of call audio."""

    def __init__(
        self,
        target_frequencies: tuple[int, ...] = BEEP_FREQUENCIES,
        min_samples: int = 1000,
        silence_rms: float = 100.0,
        magnitude_threshold: float = 0.3,
        energy_threshold: float = 0.6,
        envelope_segments: int = 4,
        envelope_min_samples: int = 4000,
        envelope_low_ratio: float = 0.3,
    ):
        """
        Initialize beep detector.

        Args:
            target_frequencies: Frequencies probed by the Goertzel bank (Hz)
            min_samples: Shorter chunks are never analyzed
            silence_rms: RMS (16-bit units) below which a chunk is silence
            magnitude_threshold: Normalized magnitude a frequency must exceed to count
            energy_threshold: Mean counted magnitude above which a tone is present
            envelope_segments: Number of segments in the envelope check
            envelope_min_samples: Minimum chunk length for the envelope check
            envelope_low_ratio: Fraction of the loudest segment considered quiet
        """
        self.target_frequencies = tuple(target_frequencies)
        self.min_samples = min_samples
        self.silence_rms = silence_rms
        self.magnitude_threshold = magnitude_threshold
        self.energy_threshold = energy_threshold
        self.envelope_segments = envelope_segments
        self.envelope_min_samples = envelope_min_samples
        self.envelope_low_ratio = envelope_low_ratio

    @staticmethod
    def _goertzel(samples: np.ndarray, target_freq: float, sample_rate: int) -> float:
        """
        Goertzel algorithm for single-frequency magnitude.

        The recurrence s[n] = x[n] + coeff * s[n-1] - s[n-2] is run as an
        IIR filter. Returns |X_k| for the DFT bin nearest target_freq.
        """
        n = len(samples)
        k = int(0.5 + n * target_freq / sample_rate)
        omega = 2 * np.pi * k / n
        coeff = 2 * np.cos(omega)

        s = signal.lfilter([1.0], [1.0, -coeff, 1.0], samples)
        s1, s2 = s[-1], s[-2]

        power = s1 * s1 + s2 * s2 - coeff * s1 * s2
        return float(np.sqrt(max(power, 0.0)))

    def _tone_energy(self, samples: np.ndarray, sample_rate: int, rms: float) -> tuple[float, dict[int, float]]:
        """
        Score narrow-band energy at the target frequencies.

        Returns:
            Tuple of (energy score in [0, 1], normalized magnitude per frequency)
        """
        n = len(samples)
        magnitudes = {}
        for freq in self.target_frequencies:
            amplitude = 2.0 * self._goertzel(samples, freq, sample_rate) / n
            magnitudes[freq] = amplitude / rms

        strong = [m for m in magnitudes.values() if m > self.magnitude_threshold]
        if not strong:
            return 0.0, magnitudes

        energy = float(np.mean(strong))
        if not np.isfinite(energy):
            raise FloatingPointError("non-finite tone energy")
        return float(np.clip(energy, 0.0, 1.0)), magnitudes

    def _envelope_onset(self, samples: np.ndarray) -> bool:
        """Detect a quiet segment followed by a loud one."""
        if len(samples) < self.envelope_min_samples:
            return False

        segment_size = len(samples) // self.envelope_segments
        levels = [
            float(np.mean(np.abs(samples[i * segment_size:(i + 1) * segment_size])))
            for i in range(self.envelope_segments)
        ]

        threshold = max(levels) * self.envelope_low_ratio
        for current, following in zip(levels, levels[1:]):
            if current < threshold and following > threshold * 2:
                return True
        return False

    def detect(self, chunk: AudioChunk) -> BeepResult:
        """
        Detect autodialer tones in one chunk.

        Args:
            chunk: Audio chunk (16-bit PCM)

        Returns:
            BeepResult; negative for short, silent or unanalyzable chunks
        """
        if chunk is None or len(chunk) < self.min_samples:
            return BeepResult.negative("Chunk too short for tone analysis")

        try:
            samples = chunk.samples.astype(np.float64)

            with np.errstate(all="raise"):
                rms = float(np.sqrt(np.mean(samples ** 2)))
            if rms < self.silence_rms:
                return BeepResult.negative(f"Near silence (RMS {rms:.1f})")

            energy, magnitudes = self._tone_energy(samples, chunk.sample_rate, rms)
            tone_detected = energy > self.energy_threshold
            envelope_detected = self._envelope_onset(samples)
        except (ArithmeticError, ValueError) as e:
            logger.debug(f"Beep analysis failed: {e}")
            return BeepResult.negative(f"Analysis error: {e}")

        reasons = []
        if tone_detected:
            strongest = max(magnitudes, key=magnitudes.get)
            reasons.append(f"sustained tone near {strongest} Hz (energy {energy:.2f})")
        if envelope_detected:
            reasons.append("silence-to-tone onset")

        return BeepResult(
            is_beep=tone_detected or envelope_detected,
            energy=energy,
            tone_detected=tone_detected,
            envelope_detected=envelope_detected,
            magnitudes=magnitudes,
            reasoning="Beep: " + ", ".join(reasons) if reasons else "No beep indicators",
        )
