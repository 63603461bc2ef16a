"""Real-time call-audio screening engine."""

__version__ = "0.1.0"
