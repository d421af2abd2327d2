"""Persistent settings and client configuration loading."""

import json
import logging
from pathlib import Path
from typing import Any

from keyboard_assist import credentials
from keyboard_assist.config import (
    DEFAULT_CORRECTION_INSTRUCTIONS,
    DEFAULT_CORRECTION_LANGUAGE,
    DEFAULT_CORRECTION_MODEL,
    DEFAULT_CORRECTION_TEMP,
    DEFAULT_RESPONSES_URL,
    DEFAULT_TIMEOUT,
    DEFAULT_TRANSCRIPTION_LANGUAGE,
    DEFAULT_TRANSCRIPTION_MODEL,
    DEFAULT_TRANSCRIPTION_PROMPT,
    DEFAULT_TRANSCRIPTIONS_URL,
    DEFAULT_WEB_SEARCH,
    CorrectionConfig,
    TranscriptionConfig,
    normalize_language,
)

logger = logging.getLogger(__name__)

SETTINGS_FILE = Path.home() / ".keyboard_assist/keyboard_assist_settings.json"

# Never written to the JSON file
SECURE_KEYS = {"api_key"}

DEFAULT_SETTINGS: dict[str, Any] = {
    "correction_endpoint": DEFAULT_RESPONSES_URL,
    "correction_model": DEFAULT_CORRECTION_MODEL,
    "correction_instructions": DEFAULT_CORRECTION_INSTRUCTIONS,
    "correction_language": DEFAULT_CORRECTION_LANGUAGE,
    "correction_temperature": DEFAULT_CORRECTION_TEMP,
    "web_search": DEFAULT_WEB_SEARCH,
    "transcription_endpoint": DEFAULT_TRANSCRIPTIONS_URL,
    "transcription_model": DEFAULT_TRANSCRIPTION_MODEL,
    "transcription_language": DEFAULT_TRANSCRIPTION_LANGUAGE,
    "transcription_prompt": DEFAULT_TRANSCRIPTION_PROMPT,
    "keep_audio": False,
    "timeout": DEFAULT_TIMEOUT,
    "debug_logging": False,
}


def load_settings() -> dict[str, Any]:
    """Load saved settings merged over ``DEFAULT_SETTINGS``.

    A plaintext ``api_key`` found in the file is moved into the keyring.
    """
    settings = dict(DEFAULT_SETTINGS)
    try:
        if SETTINGS_FILE.is_file():
            saved = json.loads(SETTINGS_FILE.read_text(encoding="utf-8"))
            if not isinstance(saved, dict):
                raise ValueError("settings root must be an object")
            settings.update(saved)
            if _migrate_plaintext_key(settings):
                save_settings(settings)
    except (OSError, UnicodeDecodeError, ValueError) as e:
        # json.JSONDecodeError is a ValueError
        logger.error(f"Could not read saved settings: {e}")
    return settings


def save_settings(settings: dict[str, Any]) -> bool:
    """Write ``settings`` to disk without secure keys. Returns True on success."""
    to_save = {k: v for k, v in settings.items() if k not in SECURE_KEYS}
    try:
        SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
        SETTINGS_FILE.write_text(json.dumps(to_save, indent=2), encoding="utf-8")
        return True
    except (OSError, TypeError, ValueError) as e:
        # TypeError: a value is not JSON serializable
        logger.error(f"Could not save settings: {e}")
        return False


def _migrate_plaintext_key(settings: dict[str, Any]) -> bool:
    """Move a plaintext API key into the keyring. Returns True if migrated."""
    value = settings.get("api_key")
    if not isinstance(value, str) or not value.strip():
        settings.pop("api_key", None)
        return False
    try:
        credentials.store_credential(credentials.API_KEY_NAME, value)
    except (credentials.CredentialStorageError, ValueError) as e:
        logger.warning(f"Failed to migrate api_key to keyring: {e}")
        return False
    del settings["api_key"]
    logger.info("Migrated api_key to secure storage")
    return True


def load_correction_config(settings: dict[str, Any] | None = None) -> CorrectionConfig:
    """Build a ``CorrectionConfig`` from saved settings and the stored API key."""
    if settings is None:
        settings = load_settings()
    return CorrectionConfig(
        api_key=credentials.resolve_api_key(),
        endpoint=settings["correction_endpoint"],
        model=settings["correction_model"],
        instructions=settings["correction_instructions"] or DEFAULT_CORRECTION_INSTRUCTIONS,
        language=normalize_language(settings["correction_language"]),
        temperature=float(settings["correction_temperature"]),
        enable_web_search=bool(settings["web_search"]),
        timeout=float(settings["timeout"]),
        debug_logging=bool(settings["debug_logging"]),
    )


def load_transcription_config(settings: dict[str, Any] | None = None) -> TranscriptionConfig:
    """Build a ``TranscriptionConfig`` from saved settings and the stored API key."""
    if settings is None:
        settings = load_settings()
    prompt = settings["transcription_prompt"]
    return TranscriptionConfig(
        api_key=credentials.resolve_api_key(),
        endpoint=settings["transcription_endpoint"],
        model=settings["transcription_model"],
        language=normalize_language(settings["transcription_language"]),
        prompt=prompt if prompt and prompt.strip() else None,
        keep_audio=bool(settings["keep_audio"]),
        timeout=float(settings["timeout"]),
        debug_logging=bool(settings["debug_logging"]),
    )
