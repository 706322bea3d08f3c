"""Folder watch classification for photolib.

Every folder is Watched, ScanOnce or Excluded. Only a few folders carry an
explicit entry; every other folder inherits the disposition of its nearest
listed ancestor, and an unlisted volume root is Excluded.

Entries are persisted as three plain-text lists in the data directory, one
fully qualified path per line. On load, conflicting entries are resolved
with Watched > ScanOnce > Excluded and the lists are rewritten so they stay
mutually exclusive.
"""

from __future__ import annotations

import enum
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .callbacks import LibraryCallbacks, LoggingCallbacks
from .config import PhotolibConfig
from .errors import RegistryLockedError
from .logging_config import get_logger
from .path_utils import is_fully_qualified, normalize, parents_of

logger = get_logger(__name__)


class Disposition(str, enum.Enum):
    WATCHED = "watched"
    SCAN_ONCE = "scan_once"
    EXCLUDED = "excluded"


# Synthetic top node of a displayed folder tree; never a real folder.
ROOT_PLACEHOLDER = " > This PC > "

# Later lists override earlier ones.
LOAD_ORDER = (Disposition.EXCLUDED, Disposition.SCAN_ONCE, Disposition.WATCHED)


class WatchRegistry:
    """The set of explicit watch entries.

    Readers (`classify`) work on an immutable snapshot and never block.
    Writers replace the snapshot. A reclassification session holds the
    write lock so no other thread can reclassify until it ends.
    """

    def __init__(self, config: PhotolibConfig, callbacks: Optional[LibraryCallbacks] = None):
        self._list_paths = {
            Disposition.WATCHED: config.watched_list_path,
            Disposition.SCAN_ONCE: config.scan_once_list_path,
            Disposition.EXCLUDED: config.excluded_list_path,
        }
        self._callbacks = callbacks or LoggingCallbacks()
        self._entries: dict[str, Disposition] = {}
        self._write_lock = threading.RLock()
        self._session_owner: Optional[int] = None

    # --- persistence ---

    def load(self) -> None:
        """Read the three lists, normalize them, and write them back."""
        entries: dict[str, Disposition] = {}

        for disposition in LOAD_ORDER:
            list_path = self._list_paths[disposition]
            if not list_path.exists():
                list_path.parent.mkdir(parents=True, exist_ok=True)
                list_path.write_text("", encoding="utf-8")
                continue

            for line in list_path.read_text(encoding="utf-8").splitlines():
                line = line.strip()
                if not line:
                    continue
                if not is_fully_qualified(line):
                    message = f"Discarded invalid path ({line}) from {list_path}."
                    logger.warning(message)
                    self._callbacks.warn(message)
                    continue

                key = normalize(line)
                previous = entries.get(key)
                if previous is not None and previous != disposition:
                    logger.debug(f"{key}: {previous.value} overridden by {disposition.value}")
                entries[key] = disposition

        with self._write_lock:
            self._entries = entries
        self.persist()

    def persist(self) -> None:
        """Atomically rewrite the three lists from the current entries."""
        entries = self._entries
        for disposition, list_path in self._list_paths.items():
            lines = sorted(p for p, d in entries.items() if d == disposition)
            _atomic_write_lines(list_path, lines)

    # --- queries ---

    def classify(self, path: Path | str) -> Disposition:
        """Return the disposition of `path`, inherited from its nearest listed ancestor."""
        if str(path) == ROOT_PLACEHOLDER:
            return Disposition.EXCLUDED

        entries = self._entries
        key = normalize(path)
        if key in entries:
            return entries[key]

        for parent in parents_of(key):
            if parent in entries:
                return entries[parent]
        return Disposition.EXCLUDED

    def root_of(self, path: Path | str) -> Optional[str]:
        """Return the nearest explicitly listed folder at or above `path`."""
        entries = self._entries
        key = normalize(path)
        if key in entries:
            return key
        for parent in parents_of(key):
            if parent in entries:
                return parent
        return None

    def entries(self) -> dict[str, Disposition]:
        return dict(self._entries)

    def _folders(self, disposition: Disposition) -> list[str]:
        return sorted(p for p, d in self._entries.items() if d == disposition)

    @property
    def watched_folders(self) -> list[str]:
        return self._folders(Disposition.WATCHED)

    @property
    def scan_once_folders(self) -> list[str]:
        return self._folders(Disposition.SCAN_ONCE)

    @property
    def excluded_folders(self) -> list[str]:
        return self._folders(Disposition.EXCLUDED)

    @property
    def write_locked(self) -> bool:
        return self._session_owner is not None

    # --- mutation ---

    @contextmanager
    def reclassification(self) -> Iterator["WatchRegistry"]:
        """Hold the write lock for a reclassification session.

        Raises RegistryLockedError if another session is active.
        """
        if not self._write_lock.acquire(blocking=False):
            raise RegistryLockedError("Folder dispositions are being edited elsewhere")
        outer = self._session_owner
        self._session_owner = threading.get_ident()
        try:
            yield self
        finally:
            self._session_owner = outer
            self._write_lock.release()

    def reclassify(self, path: Path | str, disposition: Optional[Disposition]) -> None:
        """Replace the entry for `path`; a disposition of None removes it.

        Raises RegistryLockedError while another thread holds a session.
        """
        key = normalize(path)
        if not is_fully_qualified(key):
            raise ValueError(f"Not a fully qualified path: {path}")

        if not self._write_lock.acquire(blocking=False):
            raise RegistryLockedError(f"Cannot reclassify {key}: folder list is locked")
        try:
            entries = dict(self._entries)
            if disposition is None:
                entries.pop(key, None)
            else:
                entries[key] = disposition
            self._entries = entries
        finally:
            self._write_lock.release()


def _atomic_write_lines(path: Path, lines: list[str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=path.name, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            for line in lines:
                handle.write(line + "\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
