"""Presentation callbacks invoked by the core.

The core only ever calls out through this surface; a GUI or the CLI
supplies an implementation. `LoggingCallbacks` is the default used by the
command line.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from .logging_config import get_logger

logger = get_logger(__name__)


class LibraryCallbacks(Protocol):
    def status(self, text: str) -> None:
        """Progress/status line update."""
        ...

    def folder_added(self, path: Path) -> None:
        """A folder record was created; displayed trees should refresh."""
        ...

    def warn(self, text: str) -> None:
        """Non-fatal problem the user should see (e.g. a discarded watch-list line)."""
        ...

    def fatal(self, text: str) -> None:
        """A task group stopped because the record store failed."""
        ...


class LoggingCallbacks:
    """Route every callback to the log."""

    def status(self, text: str) -> None:
        logger.debug(text)

    def folder_added(self, path: Path) -> None:
        logger.info(f"[+] Folder: {path}")

    def warn(self, text: str) -> None:
        logger.warning(text)

    def fatal(self, text: str) -> None:
        logger.error(text)
