"""
utils/logger.py
---------------
Logging setup shared by every module of the bot.

Modules call `get_logger(__name__)`; the first call installs a stdout
handler (and a rotating file handler when LOG_FILE is set) on the root
logger. Chatty client libraries are capped at WARNING so reminder
scheduling lines are not buried under HTTP polling noise.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler

from config import LOG_FILE, LOG_LEVEL

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_QUIET_LOGGERS = ("httpx", "apscheduler", "telegram.ext.ExtBot")
_configured = False


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def configure_logging(level: str = LOG_LEVEL, log_file: str = LOG_FILE) -> None:
    """Install the root handlers. Safe to call more than once."""
    global _configured
    if _configured:
        return

    formatter = logging.Formatter(_LOG_FORMAT, _DATE_FORMAT)
    root = logging.getLogger()
    root.setLevel(_level(level))

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        file_handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Named logger; configures the root logger on first use."""
    configure_logging()
    return logging.getLogger(name)
