"""
Logging configuration for the AgroClim Risk API.

Records always go to stdout; a rotating log file is added when a log
directory is configured.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from agroclim.config import settings

LOG_FILE_NAME = "agroclim.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_FILE_BACKUPS = 5

DEBUG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Libraries whose INFO records would drown the pipeline's own
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "httpx", "httpcore")


def setup_logging(level: Optional[str] = None, log_dir: Optional[str] = None) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        level: Overrides LOG_LEVEL
        log_dir: Overrides LOG_DIR; an empty value disables the log file

    Returns:
        The root logger
    """
    root = logging.getLogger()
    root.setLevel(level or settings.LOG_LEVEL)
    root.handlers.clear()

    formatter = logging.Formatter(
        fmt=DEBUG_FORMAT if settings.DEBUG else DEFAULT_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    directory = settings.LOG_DIR if log_dir is None else log_dir
    if directory:
        path = Path(directory)
        path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path / LOG_FILE_NAME,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.info(
        f"Logging initialized: level={logging.getLevelName(root.level)}, "
        f"file={Path(directory) / LOG_FILE_NAME if directory else 'off'}"
    )
    return root


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, usually called with ``__name__``."""
    return logging.getLogger(name)
