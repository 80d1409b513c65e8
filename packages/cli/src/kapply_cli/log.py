"""Logging configuration for the kapply CLI."""

from __future__ import annotations

import logging

from rich.logging import RichHandler

LOGGER_NAMES = ("kapply_core", "kapply_cli")


def setup_logging(verbose: int = 0) -> None:
    """Route kapply's loggers through rich.

    Args:
        verbose: 0 = WARNING, 1 = INFO, 2+ = DEBUG
    """
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler = RichHandler(show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    for name in LOGGER_NAMES:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        # One RichHandler per logger, however often this runs.
        logger.handlers = [h for h in logger.handlers if not isinstance(h, RichHandler)]
        logger.addHandler(handler)
