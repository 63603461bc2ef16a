"""Abstract interfaces for the audio and speech collaborators."""

from abc import ABC, abstractmethod
from typing import Optional

from .audio import AudioChunk


class AudioChunkSource(ABC):
    """Abstract base class for live call audio.

    Implementations hide whatever the platform needs to capture call
    audio (routing, permissions, device quirks). The orchestrator owns
    a source exclusively for one session and always calls stop().
    """

    @abstractmethod
    def start(self) -> None:
        """Begin capturing audio.

        Raises:
            CaptureError: If the audio source is unavailable.
        """
        ...

    @abstractmethod
    def capture_chunk(self, duration_ms: int) -> AudioChunk:
        """Capture the next chunk of audio.

        Blocks for at most duration_ms. May return early with a partial
        or empty chunk.

        Args:
            duration_ms: Nominal chunk length in milliseconds.

        Returns:
            AudioChunk of 16-bit mono PCM.

        Raises:
            CaptureError: If capture fails.
        """
        ...

    @abstractmethod
    def stop(self) -> None:
        """Stop capturing and release the audio device. Idempotent."""
        ...


class TranscriptionEngine(ABC):
    """Abstract base class for speech-to-text backends.

    The engine is expected to be initialized before a session starts.
    An engine that is not ready raises TranscriptionError on the first
    transcribe() call rather than exposing a loading state.
    """

    @abstractmethod
    def initialize(self) -> None:
        """Load models and prepare for transcription.

        Raises:
            TranscriptionError: If the engine cannot be made ready.
        """
        ...

    @abstractmethod
    def transcribe(self, chunk: AudioChunk) -> Optional[str]:
        """Transcribe one chunk of audio.

        Args:
            chunk: Audio to transcribe.

        Returns:
            Recognized text, or None when no speech was detected.

        Raises:
            TranscriptionError: If the engine is not ready or fails.
        """
        ...

    @abstractmethod
    def reset(self) -> None:
        """Discard per-session recognizer state."""
        ...
