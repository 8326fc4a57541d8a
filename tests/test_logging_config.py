"""Tests for logging setup."""

import logging
from logging.handlers import RotatingFileHandler

import pytest

from uploadstore.logging_config import LOG_BACKUP_COUNT, LOG_FILENAME, LOG_MAX_BYTES, setup_logging


@pytest.fixture(autouse=True)
def reset_logger():
    """Detach handlers added to the package logger."""
    yield
    logger = logging.getLogger("uploadstore")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_writes_to_log_file(self, tmp_path):
        logger = setup_logging(tmp_path / "logs")
        logging.getLogger("uploadstore.storage").info("stored uploads/test.jpg")
        for handler in logger.handlers:
            handler.flush()

        text = (tmp_path / "logs" / LOG_FILENAME).read_text()
        assert "stored uploads/test.jpg" in text

    def test_uses_size_rotation(self, tmp_path):
        logger = setup_logging(tmp_path)

        (handler,) = logger.handlers
        assert isinstance(handler, RotatingFileHandler)
        assert handler.maxBytes == LOG_MAX_BYTES
        assert handler.backupCount == LOG_BACKUP_COUNT

    def test_verbose_enables_debug(self, tmp_path):
        assert setup_logging(tmp_path, verbose=True).level == logging.DEBUG
        assert setup_logging(tmp_path).level == logging.INFO

    def test_repeated_setup_keeps_one_handler(self, tmp_path):
        setup_logging(tmp_path)
        logger = setup_logging(tmp_path)
        assert len(logger.handlers) == 1
