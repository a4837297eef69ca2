"""structlog configuration for CLI runs."""

from __future__ import annotations

import logging

import structlog

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def configure_logging(level: str = "info") -> None:
    """Filter structlog output below *level* (``debug``, ``info``, ``warning``, ``error``).

    Unknown level names fall back to ``info``.
    """
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            _LEVELS.get(level.lower(), logging.INFO)
        ),
    )
