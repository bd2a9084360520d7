"""Logging configuration for the ``bankbridge`` package.

Entrypoints (the CLI) call ``configure_logging`` once at startup. Library
modules only call ``get_logger(__name__)`` and never attach handlers.
"""

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "bankbridge"
_CONFIGURED = False


def _parse_level(level: int | str | None, use_env: bool = True) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str) and level.strip():
        level = level.strip().upper()
        if level.isdigit():
            return int(level)
        numeric = getattr(logging, level, None)
        if isinstance(numeric, int):
            return numeric
    env_val = os.getenv("BANKBRIDGE_LOG_LEVEL")
    if use_env and env_val:
        return _parse_level(env_val, use_env=False)
    return logging.WARNING


def configure_logging(level: int | str | None = None, stream: IO[str] = sys.stderr) -> None:
    """Attach a single StreamHandler to the package logger. Idempotent."""
    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s"))
    logger.setLevel(_parse_level(level))
    logger.addHandler(handler)
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
