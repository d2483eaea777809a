# logging_config.py

import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE_NAME = "hookrunner.log"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5

_verbosity = 0

# Handlers installed by setup_logging, replaced when it is called again
_handlers = []


def set_verbosity(level: int):
    global _verbosity
    _verbosity = level


def verbose(level: int) -> bool:
    """True when the configured verbosity is at least `level`.

    Level 1 adds the full event payload to dispatch error logs, level 2 also
    dumps every received request body.
    """
    return _verbosity >= level


def setup_logging(log_dir: str = "", verbosity: int = 0):
    """Configure the root logger. Safe to call again once the config is known."""
    set_verbosity(verbosity)

    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG if verbosity > 0 else logging.INFO)
    while _handlers:
        handler = _handlers.pop()
        logger.removeHandler(handler)
        handler.close()

    # Console handler for real-time logs
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console_handler)
    _handlers.append(console_handler)

    if not log_dir:
        return

    # File handler in the configured log directory
    try:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, LOG_FILE_NAME),
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUP_COUNT,
        )
    except OSError as e:
        logger.warning(f"Failed to create log file in {log_dir}: {e}. Logging to console only.")
        return

    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(file_handler)
    _handlers.append(file_handler)
