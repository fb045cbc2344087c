"""Logging setup for grc-evidence."""

from __future__ import annotations

import logging
import sys

_ROOT = "grc_evidence"
_level = logging.INFO


def get_logger(name: str) -> logging.Logger:
    """Return a logger namespaced under ``grc_evidence``."""
    logger = logging.getLogger(f"{_ROOT}.{name}")
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(handler)
        logger.setLevel(_level)
    return logger


def set_level(level: int) -> None:
    """Apply a log level to existing and future grc-evidence loggers."""
    global _level
    _level = level
    manager = logging.Logger.manager
    for name, logger in list(manager.loggerDict.items()):
        if name.startswith(f"{_ROOT}.") and isinstance(logger, logging.Logger):
            logger.setLevel(level)
