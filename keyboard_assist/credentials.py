"""API key storage in the system keyring.

The OpenAI key is kept in the platform credential store (Keychain, Secret
Service, Windows Credential Manager) rather than in the settings file. An
``OPENAI_API_KEY`` environment variable always takes precedence so that
scripts and CI can run without a keyring backend.
"""

import logging
import os

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

logger = logging.getLogger(__name__)

SERVICE_NAME = "KeyboardAssist"
API_KEY_NAME = "openai_api_key"
API_KEY_ENV_VAR = "OPENAI_API_KEY"


class CredentialStorageError(Exception):
    """Raised when the keyring cannot be read or written."""


def _require_name(key: str) -> None:
    if not key or not key.strip():
        raise ValueError("Credential key cannot be empty")


def store_credential(key: str, value: str) -> None:
    """Save ``value`` under ``key`` in the keyring.

    Raises:
        ValueError: If key or value is blank
        CredentialStorageError: If the keyring backend fails
    """
    _require_name(key)
    if not value or not value.strip():
        raise ValueError("Credential value cannot be empty")

    try:
        keyring.set_password(SERVICE_NAME, key, value)
    except KeyringError as e:
        raise CredentialStorageError(f"Failed to store credential: {e}") from e
    logger.info("Stored credential: %s", key)


def retrieve_credential(key: str) -> str | None:
    """Return the stored value for ``key``, or None when nothing is stored.

    Raises:
        ValueError: If key is blank
        CredentialStorageError: If the keyring backend fails
    """
    _require_name(key)
    try:
        value = keyring.get_password(SERVICE_NAME, key)
    except KeyringError as e:
        raise CredentialStorageError(f"Failed to retrieve credential: {e}") from e
    logger.debug("Credential %s %s", key, "found" if value else "not found")
    return value


def delete_credential(key: str) -> None:
    """Remove ``key`` from the keyring. Deleting a missing key is a no-op."""
    _require_name(key)
    try:
        keyring.delete_password(SERVICE_NAME, key)
        logger.info("Deleted credential: %s", key)
    except PasswordDeleteError:
        logger.debug("No credential to delete: %s", key)
    except KeyringError as e:
        raise CredentialStorageError(f"Failed to delete credential: {e}") from e


def resolve_api_key() -> str:
    """Find the OpenAI API key: environment first, then the keyring.

    Returns:
        The key, or an empty string when none is configured
    """
    env_value = os.environ.get(API_KEY_ENV_VAR, "").strip()
    if env_value:
        return env_value

    try:
        return retrieve_credential(API_KEY_NAME) or ""
    except CredentialStorageError as e:
        logger.warning("Could not read API key from keyring: %s", e)
        return ""
