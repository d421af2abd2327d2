"""Keyboard Assist - LLM autocorrect and speech-to-text clients for keyboard input."""

__version__ = "0.1.0"

__all__ = [
    "audio",
    "config",
    "correction",
    "credentials",
    "http_client",
    "response_parser",
    "results",
    "settings_store",
    "transcription",
]
