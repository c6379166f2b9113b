"""Logging setup for the sessionguard package."""

from __future__ import annotations

import logging

LOGGER_NAME = "sessionguard"
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach one stream handler to the package logger and set its level."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not any(getattr(handler, "_sessionguard", False) for handler in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        handler._sessionguard = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
