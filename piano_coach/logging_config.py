"""Centralized logging configuration for Piano Coach.

This module provides a consistent way to configure logging across the application.
"""

import logging
import sys
from typing import Optional

# Log levels for different modules
MODULE_LOG_LEVELS = {
    # Core modules
    "piano_coach": logging.INFO,
    "piano_coach.app": logging.INFO,
    "piano_coach.coordinator": logging.INFO,
    "piano_coach.core": logging.INFO,
    # Audio path
    "piano_coach.audio": logging.INFO,
    "piano_coach.audio.pitch": logging.INFO,  # Set to DEBUG for per-window estimates
    "piano_coach.services": logging.INFO,
    "piano_coach.tuning": logging.INFO,
    "piano_coach.ui": logging.WARNING,  # UI modules are noisy, keep at WARNING
    "piano_coach.logger": logging.WARNING,  # Logger module itself should be quiet
    # Libraries/third-party
    "sounddevice": logging.ERROR,
    "soundfile": logging.ERROR,
    # Root logger
    "": logging.ERROR,
}

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Shared handler
_handler: Optional[logging.Handler] = None


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """Set up logging configuration for the application.

    Args:
        level: If provided, override all 'piano_coach' log levels with this level (e.g., "DEBUG").
        log_file: Write to this file instead of stdout. Used while the curses
            screen owns the terminal.
    """
    global _handler

    if _handler is not None:
        _handler.close()

    if log_file:
        _handler = logging.FileHandler(log_file)
    else:
        _handler = logging.StreamHandler(sys.stdout)
    _handler.setFormatter(logging.Formatter(LOG_FORMAT))

    # Determine log levels
    log_levels = MODULE_LOG_LEVELS.copy()
    if level:
        numeric_level = logging.getLevelName(level.upper())
        if isinstance(numeric_level, int):
            for module_name in log_levels:
                if module_name.startswith("piano_coach"):
                    log_levels[module_name] = numeric_level
        else:
            logging.getLogger(__name__).error(f"Invalid log level: {level}")

    # Apply module-specific levels
    for module_name, module_level in log_levels.items():
        logger = logging.getLogger(module_name if module_name else "")
        logger.setLevel(module_level)

        # Clear existing handlers and add the shared one
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
        logger.addHandler(_handler)
        logger.propagate = False

    logging.getLogger("piano_coach").debug("Logging configuration complete")
