"""Logging helpers shared by the CLI and runtime modules."""

from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DEPENDENCY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore")
_LOGGING_CONFIGURED = False


def _resolve_level(level: int | str | None) -> int:
    """Resolves an explicit level, then LOG_LEVEL, then INFO."""
    candidate = level if level is not None else os.getenv("LOG_LEVEL")
    if candidate is None or candidate == "":
        return logging.INFO
    if isinstance(candidate, int):
        return candidate
    resolved = logging.getLevelName(str(candidate).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: int | str | None = None) -> int:
    """Configures root logging once and returns the applied level."""
    global _LOGGING_CONFIGURED
    applied_level = _resolve_level(level)
    root_logger = logging.getLogger()
    if not _LOGGING_CONFIGURED and not root_logger.handlers:
        logging.basicConfig(format=LOG_FORMAT, level=applied_level)
        for handler in root_logger.handlers:
            handler.setLevel(applied_level)
    root_logger.setLevel(applied_level)
    dependency_level = logging.DEBUG if applied_level <= logging.DEBUG else logging.WARNING
    for name in _DEPENDENCY_LOGGERS:
        logging.getLogger(name).setLevel(dependency_level)
    _LOGGING_CONFIGURED = True
    return applied_level


def get_logger(name: str) -> logging.Logger:
    """Returns a named logger, configuring logging from LOG_LEVEL on first use."""
    if not _LOGGING_CONFIGURED:
        configure_logging()
    return logging.getLogger(name)
