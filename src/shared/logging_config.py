"""Logging configuration and setup.

This module provides thread-safe logging configuration with file rotation
and console output for extraction runs.
"""

import logging
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from src.shared.constants import LOGGING

__all__ = [
    'setup_logging',
]


_logging_lock = threading.Lock()

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

# Libraries that are chatty at INFO/DEBUG
QUIET_LOGGERS = ('asyncio',)


def setup_logging(
    log_file: Optional[str] = LOGGING.LOG_FILE,
    level: int = logging.INFO,
    max_bytes: int = LOGGING.MAX_BYTES,
    backup_count: int = LOGGING.BACKUP_COUNT
) -> None:
    """Setup logging with a rotating log file and console output.

    Idempotent and thread-safe: repeated calls do not add duplicate handlers.
    A file handler with a different rotation setting is replaced; a call
    with a new level only adjusts the level.

    Args:
        log_file: Path to log file (None for console only)
        level: Root logger level
        max_bytes: Maximum file size before rotation (default: 10MB)
        backup_count: Number of backup files to keep (default: 5)
    """
    with _logging_lock:
        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        formatter = logging.Formatter(LOG_FORMAT)

        if log_file:
            log_path = Path(log_file)
            has_file_handler = False
            for handler in root_logger.handlers[:]:
                if isinstance(handler, RotatingFileHandler) and handler.baseFilename == str(log_path.absolute()):
                    if handler.maxBytes == max_bytes and handler.backupCount == backup_count:
                        has_file_handler = True
                        break
                    root_logger.removeHandler(handler)
                    handler.close()

            if not has_file_handler:
                log_path.parent.mkdir(parents=True, exist_ok=True)
                file_handler = RotatingFileHandler(
                    log_file,
                    maxBytes=max_bytes,
                    backupCount=backup_count,
                    encoding='utf-8'
                )
                file_handler.setFormatter(formatter)
                root_logger.addHandler(file_handler)

        # FileHandler is the base class of every file-based handler
        has_console_handler = any(
            isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
            for h in root_logger.handlers
        )
        if not has_console_handler:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(formatter)
            root_logger.addHandler(console_handler)

        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(max(level, logging.WARNING))
