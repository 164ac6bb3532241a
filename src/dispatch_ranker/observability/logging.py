"""Shared logging utilities for ranking observability.

Usage example:
    from dispatch_ranker.observability.logging import get_logger

    logger = get_logger("dispatch_ranker.technician_ranking")
    logger.info("Ranking %s technicians", technician_count)
"""

from __future__ import annotations

import logging
import time

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
_ROOT_NAME = "dispatch_ranker"


def get_logger(name: str) -> logging.Logger:
    """Return a logger writing UTC-stamped lines to stderr.

    Args:
        name: Logger name (use a stable module-qualified name).

    Returns:
        A logger with a single stream handler. Repeated calls reuse the handler.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT)
        formatter.converter = time.gmtime
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
    return logger


def set_log_level(level: int) -> None:
    """Apply a level to every logger already created under the package namespace."""
    manager = logging.Logger.manager
    for name, candidate in list(manager.loggerDict.items()):
        if not isinstance(candidate, logging.Logger):
            continue
        if name == _ROOT_NAME or name.startswith(f"{_ROOT_NAME}."):
            candidate.setLevel(level)
