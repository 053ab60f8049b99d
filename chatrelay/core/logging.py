# chatrelay/core/logging.py

import logging
import os
import sys


DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Each WebSocket upgrade and every /health probe shows up as an access line
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "websockets": logging.WARNING,
    "websockets.server": logging.WARNING,
}


def setup_logging() -> None:
    """
    Configure logging for the relay.

    - LOG_LEVEL (default INFO) sets the ``chatrelay`` logger level; per-event
      traces such as skipped deliveries only show at DEBUG
    - Logs go to stdout
    - uvicorn access lines and websockets protocol chatter are limited to WARNING
    """
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)
    logging.getLogger("chatrelay").setLevel(level)

    # uvicorn may have installed handlers already; reuse them
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
    root_logger.setLevel(min(level, logging.INFO))
    root_logger.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``logging.getLogger(name)``; kept so modules import one helper."""
    return logging.getLogger(name)
