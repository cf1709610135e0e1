"""Logging setup shared by the service, the workers and the tracking core.

Every record carries a ``trace_id`` (the session id where one is known) so
the lines of one session can be correlated across the log.
"""
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from .config import LOG_FILE, LOG_LEVEL

ROOT = "botdetector"
FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] [trace=%(trace_id)s] %(message)s"


class TraceFilter(logging.Filter):
    def filter(self, record):
        if not hasattr(record, "trace_id"):
            record.trace_id = "-"
        return True


def configure_logging(level: str = LOG_LEVEL, log_file: Optional[str] = LOG_FILE) -> logging.Logger:
    """Attach console (and optionally rotating file) handlers to the package logger.

    Safe to call more than once; handlers are only added the first time.
    """
    logger = logging.getLogger(ROOT)
    logger.setLevel(level)
    if getattr(logger, "_botdetector_configured", False):
        return logger

    formatter = logging.Formatter(FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.addFilter(TraceFilter())
    logger.addHandler(console_handler)

    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        # rotate at 5 MB to avoid uncontrolled log growth
        file_handler = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=5, encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.addFilter(TraceFilter())
        logger.addHandler(file_handler)

    logger._botdetector_configured = True
    return logger


def get_trace_logger(name: str, trace_id: Optional[str]) -> logging.LoggerAdapter:
    """Return a LoggerAdapter that stamps ``trace_id`` on each record."""
    return logging.LoggerAdapter(logging.getLogger(name), {"trace_id": trace_id if trace_id else "-"})
