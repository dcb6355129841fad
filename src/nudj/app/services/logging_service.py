"""Logging setup.

Console output goes to stderr so stdout stays clean for scripting
(`nudj config --path`, `nudj receivers --json`). A persistent log is kept
next to the config file:

    <config dir>/logs/
    └── nudj.log
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from nudj.app.config import get_logs_dir

# Log format
LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
CONSOLE_FORMAT = "%(levelname)-7s | %(name)s - %(message)s"

LOG_FILE_NAME = "nudj.log"

_file_handler: Optional[logging.FileHandler] = None


def get_log_file() -> Path:
    return get_logs_dir() / LOG_FILE_NAME


def setup_logging(level: int = logging.WARNING, log_to_file: bool = True) -> None:
    """Configure console and file logging.

    Call this once from the CLI entry point. The file log always records
    INFO and above; the console only shows `level` and above.
    """
    global _file_handler

    root_logger = logging.getLogger()
    root_logger.setLevel(min(level, logging.INFO))

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()
    if _file_handler is not None:
        _file_handler.close()
        _file_handler = None

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root_logger.addHandler(console_handler)

    if log_to_file:
        try:
            log_file = get_log_file()
            log_file.parent.mkdir(parents=True, exist_ok=True)
            _file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            logging.getLogger(__name__).warning(f"File logging disabled: {e}")
        else:
            _file_handler.setLevel(min(level, logging.INFO))
            _file_handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
            root_logger.addHandler(_file_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("pywebpush").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)


def redact_endpoint(endpoint: str, keep: int = 40) -> str:
    """Shorten a push endpoint for log output; the tail identifies the subscription."""
    if len(endpoint) <= keep:
        return endpoint
    return endpoint[:keep] + "..."
