"""Tests for logging setup."""

import logging

import pytest

from recollect.core.logging import get_logger, setup_logging


@pytest.fixture
def root_logger():
    logger = logging.getLogger("recollect")
    yield logger
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_get_logger_namespaced():
    assert get_logger("memory.tiers").name == "recollect.memory.tiers"


def test_setup_logging_replaces_handlers(root_logger, tmp_path):
    log_file = tmp_path / "logs" / "recollect.log"
    setup_logging(logging.DEBUG, log_file)
    setup_logging(logging.DEBUG, log_file)

    assert len(root_logger.handlers) == 2
    assert root_logger.level == logging.DEBUG

    get_logger("memory.tiers").info("tier store ready")
    for handler in root_logger.handlers:
        handler.flush()
    assert "recollect.memory.tiers | tier store ready" in log_file.read_text(encoding="utf-8")
