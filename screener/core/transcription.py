"""Concrete transcription engines.

VoskTranscriptionEngine wraps the offline Vosk recognizer (optional
``vosk`` extra). ScriptedTranscriptionEngine replays known text, which
lets a recorded call be screened against a reference transcript.
"""

import json
import logging
from pathlib import Path
from typing import Iterable, Optional, Union

from .audio import SAMPLE_RATE, AudioChunk
from .errors import TranscriptionError
from .provider import TranscriptionEngine

logger = logging.getLogger(__name__)


def parse_vosk_result(payload: Optional[str]) -> Optional[str]:
    """
    Extract recognized text from a Vosk JSON result.

    Vosk returns ``{"text": "..."}`` for final results and
    ``{"partial": "..."}`` for partial ones.

    Returns:
        Stripped text, or None when empty or unparseable
    """
    if not payload:
        return None
    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        logger.debug(f"Unparseable recognizer output: {payload[:80]!r}")
        return None
    if not isinstance(data, dict):
        return None
    text = data.get("text") or data.get("partial") or ""
    text = text.strip()
    return text or None


class VoskTranscriptionEngine(TranscriptionEngine):
    """Offline speech recognition with Vosk.

    Each chunk is recognized independently: the recognizer is reset
    before every chunk so fragments never repeat in the transcript.
    """

    def __init__(self, model_path: Union[str, Path], sample_rate: int = SAMPLE_RATE):
        """
        Initialize engine.

        Args:
            model_path: Directory of an unpacked Vosk model
            sample_rate: Rate of the audio that will be submitted
        """
        self.model_path = Path(model_path)
        self.sample_rate = sample_rate
        self._model = None
        self._recognizer = None

    @property
    def is_ready(self) -> bool:
        return self._recognizer is not None

    def initialize(self) -> None:
        if self.is_ready:
            return
        if not self.model_path.is_dir():
            raise TranscriptionError(f"Vosk model not found at {self.model_path}")

        try:
            from vosk import KaldiRecognizer, Model, SetLogLevel
        except ImportError as e:
            raise TranscriptionError("vosk not installed. Run: pip install call-screener[vosk]") from e

        SetLogLevel(-1)
        try:
            self._model = Model(str(self.model_path))
            self._recognizer = KaldiRecognizer(self._model, self.sample_rate)
        except Exception as e:
            raise TranscriptionError(f"Failed to load Vosk model: {e}") from e

        logger.info(f"Vosk model loaded from {self.model_path}")

    def transcribe(self, chunk: AudioChunk) -> Optional[str]:
        if not self.is_ready:
            raise TranscriptionError("Engine not initialized")
        if chunk.is_empty:
            return None
        if chunk.sample_rate != self.sample_rate:
            raise TranscriptionError(
                f"Chunk sample rate {chunk.sample_rate} does not match engine rate {self.sample_rate}"
            )

        try:
            self._recognizer.Reset()
            if self._recognizer.AcceptWaveform(chunk.to_pcm_bytes()):
                payload = self._recognizer.Result()
            else:
                payload = self._recognizer.PartialResult()
        except Exception as e:
            raise TranscriptionError(f"Vosk recognition failed: {e}") from e

        return parse_vosk_result(payload)

    def reset(self) -> None:
        if self._recognizer is not None:
            self._recognizer.Reset()


class ScriptedTranscriptionEngine(TranscriptionEngine):
    """Returns pre-written fragments, one per transcribed chunk.

    Once the script runs out every further chunk yields None. Blank
    entries stand for chunks without speech.
    """

    def __init__(self, fragments: Iterable[Optional[str]]):
        self.fragments = list(fragments)
        self._index = 0
        self.initialized = False
        self.reset_count = 0

    @classmethod
    def from_file(cls, filepath: Union[str, Path]) -> "ScriptedTranscriptionEngine":
        """Load a script with one fragment per line."""
        lines = Path(filepath).read_text(encoding="utf-8").splitlines()
        return cls(line.strip() for line in lines)

    def initialize(self) -> None:
        self.initialized = True

    def transcribe(self, chunk: AudioChunk) -> Optional[str]:
        if not self.initialized:
            raise TranscriptionError("Engine not initialized")
        if self._index >= len(self.fragments):
            return None
        fragment = self.fragments[self._index]
        self._index += 1
        return fragment or None

    def reset(self) -> None:
        self._index = 0
        self.reset_count += 1
