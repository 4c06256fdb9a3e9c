"""Logging configuration helpers for the pricewatch service."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

LOG_DIR = os.getenv("PRICEWATCH_LOG_DIR", "logs")
LOG_FILE = os.path.join(LOG_DIR, "pricewatch.log")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DEFAULT_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

_handlers: list[logging.Handler] = []


def _shared_handlers() -> list[logging.Handler]:
    # One rotating file for every module; separate handlers on the same file
    # would each try to rotate it.
    if not _handlers:
        os.makedirs(LOG_DIR, exist_ok=True)
        formatter = logging.Formatter(LOG_FORMAT)

        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=1_000_000,
            backupCount=3,
            encoding="utf-8",
        )
        console_handler = logging.StreamHandler()
        for handler in (file_handler, console_handler):
            handler.setFormatter(formatter)
            handler.setLevel(DEFAULT_LEVEL)
            _handlers.append(handler)
    return _handlers


def get_logger(name: str) -> logging.Logger:
    """Return a logger writing to the console and ``logs/pricewatch.log``."""
    logger = logging.getLogger(name)
    logger.setLevel(DEFAULT_LEVEL)
    logger.propagate = False

    if not logger.handlers:
        for handler in _shared_handlers():
            logger.addHandler(handler)

    return logger


def quiet_library_loggers(level: int = logging.WARNING) -> None:
    """Keep scheduler and HTTP client chatter out of the service log."""
    for name in ("apscheduler", "urllib3", "asyncio"):
        logging.getLogger(name).setLevel(level)
