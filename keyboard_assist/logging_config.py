"""Logging configuration for keyboard-assist."""

import logging
import sys
from pathlib import Path

LOGGER_NAME = "keyboard_assist"

LOG_DIR = Path.home() / ".keyboard_assist" / "logs"
LOG_FILE = LOG_DIR / "keyboard_assist.log"

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"


def setup_logging(level: int = logging.INFO, log_to_file: bool = True) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        level: Console logging level (default: INFO)
        log_to_file: Also write DEBUG records to ``LOG_FILE``

    Returns:
        The ``keyboard_assist`` logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_to_file else level)

    # Handlers are only attached once per process
    if logger.handlers:
        for handler in logger.handlers:
            if isinstance(handler, logging.StreamHandler) and not isinstance(
                handler, logging.FileHandler
            ):
                handler.setLevel(level)
        return logger

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    logger.addHandler(console_handler)

    if not log_to_file:
        return logger

    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(LOG_FILE, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(file_handler)
    except OSError as e:
        # PermissionError is an OSError too
        logger.warning("Could not set up file logging: %s", e)

    return logger
