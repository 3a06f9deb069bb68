"""
Logging for the memory pipeline.

Every module logs under the ``recollect`` namespace so a host application can
raise or silence memory logging on its own. The CLI is the only caller of
``setup_logging``; library use leaves handler setup to the host.
"""

import logging
import sys
from pathlib import Path

ROOT_LOGGER = "recollect"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: int = logging.INFO,
    log_file: Path | None = None,
) -> logging.Logger:
    """Attach stderr and optional file handlers to the recollect logger.

    Handlers from an earlier call are closed and replaced.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    # stdout carries CLI output
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for a module path below the package, e.g. ``memory.tiers``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
