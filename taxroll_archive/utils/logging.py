"""Centralized logging configuration."""

import logging
import os
import sys
from typing import Dict, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers created without an explicit level follow the settings level
_default_level = os.getenv("LOG_LEVEL", "INFO")
_inheriting: Dict[str, logging.Logger] = {}


def _resolve(level: str) -> int:
    return getattr(logging, level.upper(), logging.INFO)


def _apply(logger: logging.Logger, level: int) -> None:
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Get a configured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)
        level: Optional log level override (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Without it the logger follows ``set_default_level``.

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name)

    if level is None:
        _inheriting[name] = logger
    else:
        _inheriting.pop(name, None)
    log_level = _resolve(level or _default_level)

    # Avoid duplicate handlers when a module is re-imported
    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(console_handler)
        logger.propagate = False

    _apply(logger, log_level)
    return logger


def set_default_level(level: str) -> None:
    """Re-level every logger that was created without an explicit level."""
    global _default_level
    _default_level = level
    for logger in _inheriting.values():
        _apply(logger, _resolve(level))
