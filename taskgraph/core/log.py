from __future__ import annotations

import logging
import sys


ROOT_LOGGER = "taskgraph"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class _StderrHandler(logging.StreamHandler):
    """StreamHandler that writes to whatever sys.stderr is at emit time."""

    def __init__(self) -> None:
        super().__init__(sys.stderr)

    def emit(self, record: logging.LogRecord) -> None:
        self.stream = sys.stderr
        super().emit(record)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def configure_logging(level: str = "WARNING") -> logging.Logger:
    """Attach a single stderr handler to the package logger.

    Safe to call more than once; the handler is replaced rather than stacked.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level.upper())

    for h in list(logger.handlers):
        if isinstance(h, _StderrHandler):
            logger.removeHandler(h)

    handler = _StderrHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    return logger
