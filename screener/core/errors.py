"""Exceptions raised by the screening engine."""


class ScreenerError(Exception):
    """Base exception for screening errors."""
    pass


class CaptureError(ScreenerError):
    """Exception raised when call audio cannot be captured."""
    pass


class TranscriptionError(ScreenerError):
    """Exception raised when the speech-to-text engine fails or is not ready."""
    pass


class SessionActiveError(ScreenerError):
    """Exception raised when a session is started while another is running."""
    pass


class ConfigError(ScreenerError):
    """Exception raised for invalid session or keyword configuration."""
    pass
