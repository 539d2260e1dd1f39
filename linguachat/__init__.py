"""LinguaChat: two-party real-time chat with automatic translation."""

__version__ = "1.0.0"
