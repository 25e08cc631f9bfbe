"""Logging setup for the memtrim command line."""

import logging
import sys

_formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")


def configure_logging(verbose: bool = False) -> logging.Logger:
    """
    Send memtrim log records to stderr.

    WARNING and above by default, everything with ``verbose``. Calling this
    again replaces the handler instead of adding a second one.
    """
    logger = logging.getLogger("memtrim")
    for handler in list(logger.handlers):
        if getattr(handler, "_memtrim_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_formatter)
    handler._memtrim_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    return logger
