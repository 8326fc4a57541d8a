"""Logging configuration for uploadstore.

Library modules log through ``logging.getLogger(__name__)``; the CLI
calls :func:`setup_logging` to send those records to a session log file.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILENAME = "uploadstore.log"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5


def setup_logging(log_dir: Path, verbose: bool = False) -> logging.Logger:
    """Send package logging to a size-rotated file.

    Args:
        log_dir: Directory to store log files
        verbose: Log DEBUG records (lazy fetches, skipped cache keys)

    Returns:
        The configured "uploadstore" logger
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILENAME

    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger("uploadstore")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    file_handler = RotatingFileHandler(
        log_file, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT, encoding="utf-8"
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)-28s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(file_handler)

    logger.info(f"Logging to {log_file}")
    return logger
