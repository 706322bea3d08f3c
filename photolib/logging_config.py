"""Logging setup for photolib.

Two sinks: a rotating `photolib.log` in the data directory that records
everything at DEBUG with the emitting thread, and a Rich console at the
requested level. Calling `setup_logging` again swaps both handlers, so a
command can raise verbosity after startup.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

LOG_FILE_NAME = "photolib.log"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

# Worker threads are named "photolib-scanner", "photolib-deletion", "photolib-changes".
FILE_FORMAT = "%(asctime)s %(levelname)-8s [%(threadName)s] %(name)s: %(message)s"

QUIET_LOGGERS = {
    "watchdog": logging.WARNING,
    "PIL": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}

_installed: list[logging.Handler] = []


def _file_handler(log_dir: Path) -> logging.Handler:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def _console_handler(level: int) -> logging.Handler:
    console = Console(theme=Theme({"logging.level.info": "bold cyan"}), stderr=True)
    handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        show_time=False,
        show_path=False,
    )
    handler.setLevel(level)
    return handler


def setup_logging(log_level: str = "INFO", log_dir: Optional[Path] = None) -> None:
    """Install the console handler, plus the log file when `log_dir` is given.

    Args:
        log_level: Console threshold (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory for photolib.log, normally the config's data_dir
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    for handler in _installed:
        root.removeHandler(handler)
        handler.close()
    _installed.clear()

    _installed.append(_console_handler(level))
    if log_dir is not None:
        _installed.append(_file_handler(log_dir))
    for handler in _installed:
        root.addHandler(handler)
    root.setLevel(logging.DEBUG)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    # Alembic's fileConfig would otherwise install its own stderr handler.
    alembic_logger = logging.getLogger("alembic")
    alembic_logger.handlers = []
    alembic_logger.propagate = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
