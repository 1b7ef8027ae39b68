"""
Logger setup shared by engine modules.
"""

import logging
import sys

from planmyday.core.config import get_settings

_configured_loggers: set[str] = set()


def setup_logger(name: str) -> logging.Logger:
    """
    Get a module logger with the engine's handler and level applied.

    Args:
        name: Logger name (usually ``__name__``)

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    if name in _configured_loggers:
        return logger

    settings = get_settings()
    logger.setLevel(settings.LOG_LEVEL)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(settings.LOG_FORMAT))
        logger.addHandler(handler)
    logger.propagate = False
    _configured_loggers.add(name)
    return logger
