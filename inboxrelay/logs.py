"""
inboxrelay Diagnostic Log

The bridge is headless and its stdout carries the wire protocol, so every
diagnostic goes to an append-only file instead.

Line format: ``yyyy-MM-dd HH:mm:ss.fff - <message>``
"""

import logging
from pathlib import Path
from typing import Union

LOGGER_NAME = "inboxrelay"
LOG_FORMAT = "%(asctime)s.%(msecs)03d - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def configure_logging(
    log_file: Union[str, Path],
    level: Union[int, str] = logging.INFO,
) -> logging.Logger:
    """
    Attach the diagnostic file handler to the package logger.

    Calling this again with the same file only updates the level.

    Args:
        log_file: File to append to (parent directory is created)
        level: Logging level name or number

    Returns:
        The package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    if isinstance(level, str):
        level = getattr(logging, level.upper())
    logger.setLevel(level)
    logger.propagate = False

    log_path = Path(log_file).resolve()
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == log_path:
            return logger

    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    logger.addHandler(handler)
    return logger


def close_logging() -> None:
    """Detach and close every handler on the package logger."""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
