# terminal/utils/logger.py
"""
Logging setup for the terminal backend.

One root configuration, applied on the first `get_logger` call:
console output plus, unless LOG_TO_FILE is off, a rotating `terminal.log`
under LOG_DIR. Services tag their messages with a component prefix:
[LANE], [SEQ], [TICKET], [QR], [PENALTY], [SWEEP], [NOTIFY].
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from terminal.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILENAME = "terminal.log"

# Logs every job execution at INFO.
QUIET_LOGGERS = ("apscheduler",)

_configured = False


def log_dir() -> str:
    if settings.LOG_DIR:
        return settings.LOG_DIR
    return os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "logs")


def build_handlers(level: str) -> list[logging.Handler]:
    """Console handler, plus the rotating file handler when file logging is enabled."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if settings.LOG_TO_FILE:
        directory = log_dir()
        os.makedirs(directory, exist_ok=True)
        handlers.append(RotatingFileHandler(
            filename=os.path.join(directory, LOG_FILENAME),
            maxBytes=settings.LOG_FILE_MAX_MB * 1024 * 1024,
            backupCount=settings.LOG_FILE_BACKUPS,
            encoding="utf-8",
        ))

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def _configure_root_logger():
    global _configured
    if _configured:
        return
    _configured = True

    level = settings.LOG_LEVEL.upper()
    root = logging.getLogger()
    root.setLevel(level)
    for handler in build_handlers(level):
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(settings.SCHEDULER_LOG_LEVEL.upper())


def get_logger(name: str) -> logging.Logger:
    """Named logger for a module; configures the root logger on first use."""
    _configure_root_logger()
    return logging.getLogger(name)
