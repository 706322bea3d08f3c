"""Filesystem monitoring for photolib.

Uses Watchdog to capture create/change/delete/rename notifications for
image files under the Watched roots. Handlers only enqueue; a single
consumer thread drains the queue, collapsing bursts of updates to the same
file, and applies each change through the same reconciliation the tree
scanner uses.
"""

from __future__ import annotations

import enum
import itertools
import queue
import threading
import time
from collections import deque
from pathlib import Path
from typing import NamedTuple, Optional

from sqlalchemy.exc import SQLAlchemyError
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .callbacks import LibraryCallbacks, LoggingCallbacks
from .config import PhotolibConfig
from .database import init_db, open_session
from .deletion import retire_missing_photo
from .errors import SidecarError, StoreError
from .logging_config import get_logger
from .path_utils import parents_of
from .repository import Repository
from .scanner import FolderState, reconcile_file
from .watchlist import Disposition, WatchRegistry

logger = get_logger(__name__)


class ChangeAction(str, enum.Enum):
    CREATED = "created"
    CHANGED = "changed"
    DELETED = "deleted"
    RENAMED = "renamed"


_UPDATES = (ChangeAction.CREATED, ChangeAction.CHANGED)


class ChangeEvent(NamedTuple):
    action: ChangeAction
    path: Path
    old_path: Optional[Path] = None
    sequence: int = 0


class ChangeQueue:
    """Thread-safe FIFO of ChangeEvents with peek.

    Each event is stamped with its arrival order on `put`.
    """

    def __init__(self):
        self._items: deque[ChangeEvent] = deque()
        self._not_empty = threading.Condition()
        self._counter = itertools.count(1)

    def put(self, event: ChangeEvent) -> ChangeEvent:
        with self._not_empty:
            event = event._replace(sequence=next(self._counter))
            self._items.append(event)
            self._not_empty.notify()
        return event

    def get(self, timeout: Optional[float] = None) -> ChangeEvent:
        """Remove and return the oldest event. Raises queue.Empty on timeout."""
        with self._not_empty:
            if not self._not_empty.wait_for(lambda: self._items, timeout=timeout):
                raise queue.Empty
            return self._items.popleft()

    def get_nowait(self) -> ChangeEvent:
        with self._not_empty:
            if not self._items:
                raise queue.Empty
            return self._items.popleft()

    def peek(self) -> Optional[ChangeEvent]:
        with self._not_empty:
            return self._items[0] if self._items else None

    def __len__(self) -> int:
        with self._not_empty:
            return len(self._items)


def next_coalesced(
    change_queue: ChangeQueue,
    timeout: Optional[float] = None,
    settle: float = 0.0,
) -> Optional[ChangeEvent]:
    """Dequeue the next event, collapsing runs of updates to the same path.

    While both the current and the next event are CREATED/CHANGED for the
    same file, the current one is dropped in favour of the next. Returns
    None if nothing arrived within `timeout`.
    """
    try:
        current = change_queue.get(timeout=timeout)
    except queue.Empty:
        return None

    # Let the rest of a burst arrive before deciding.
    if settle:
        time.sleep(settle)

    while True:
        upcoming = change_queue.peek()
        if (
            upcoming is None
            or current.action not in _UPDATES
            or upcoming.action not in _UPDATES
            or upcoming.path != current.path
        ):
            return current
        logger.debug(f"Collapsed: {current.path}")
        current = change_queue.get_nowait()


class PhotoChangeHandler(FileSystemEventHandler):
    """Turn watchdog events for qualifying image files into ChangeEvents."""

    def __init__(self, config: PhotolibConfig, registry: WatchRegistry, change_queue: ChangeQueue):
        super().__init__()
        self.config = config
        self.registry = registry
        self.change_queue = change_queue

    def dispatch(self, event: FileSystemEvent) -> None:
        # Keep the observer alive for the other handlers.
        try:
            super().dispatch(event)
        except Exception:
            logger.error(f"Change listener failed for {event.src_path}", exc_info=True)

    def qualifies(self, path: Path) -> bool:
        return (
            self.config.file_types.is_scannable(path)
            and self.registry.classify(path) == Disposition.WATCHED
        )

    def _enqueue(self, action: ChangeAction, path: Path, old_path: Optional[Path] = None) -> None:
        self.change_queue.put(ChangeEvent(action, path, old_path))
        logger.debug(f"{action.value}: {path}")

    def on_created(self, event: FileSystemEvent) -> None:
        path = Path(event.src_path)
        if not event.is_directory and self.qualifies(path):
            self._enqueue(ChangeAction.CREATED, path)

    def on_modified(self, event: FileSystemEvent) -> None:
        path = Path(event.src_path)
        if not event.is_directory and self.qualifies(path):
            self._enqueue(ChangeAction.CHANGED, path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        path = Path(event.src_path)
        if not event.is_directory and self.qualifies(path):
            self._enqueue(ChangeAction.DELETED, path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        src_path = Path(event.src_path)
        dest_path = Path(event.dest_path)
        if self.qualifies(src_path) or self.qualifies(dest_path):
            self._enqueue(ChangeAction.RENAMED, dest_path, old_path=src_path)


class ChangeCapture:
    """One recursive watchdog watch per Watched root, feeding a ChangeQueue."""

    def __init__(
        self,
        config: PhotolibConfig,
        registry: WatchRegistry,
        change_queue: ChangeQueue,
        callbacks: Optional[LibraryCallbacks] = None,
    ):
        self.config = config
        self.registry = registry
        self.change_queue = change_queue
        self.callbacks = callbacks or LoggingCallbacks()
        self._observer: Optional[Observer] = None
        self.watched_roots: list[str] = []

    def start(self) -> None:
        if self._observer is not None:
            return
        observer = Observer()
        roots = self.registry.watched_folders
        watched = set(roots)

        for root in roots:
            # A nested Watched root is already covered by its ancestor's watch.
            if any(parent in watched for parent in parents_of(root)):
                continue
            if not Path(root).is_dir():
                self.callbacks.warn(f"Watched folder not found: {root}")
                continue
            handler = PhotoChangeHandler(self.config, self.registry, self.change_queue)
            observer.schedule(handler, root, recursive=True)
            self.watched_roots.append(root)
            logger.info(f"[WATCH] {root}")

        observer.start()
        self._observer = observer

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5)
        self._observer = None
        self.watched_roots = []
        logger.info("Stopped watching folders.")

    @property
    def running(self) -> bool:
        return self._observer is not None


class ChangeProcessor:
    """Queue consumer: applies each coalesced change to the index."""

    def __init__(
        self,
        config: PhotolibConfig,
        registry: WatchRegistry,
        change_queue: ChangeQueue,
        callbacks: Optional[LibraryCallbacks] = None,
    ):
        self.config = config
        self.registry = registry
        self.change_queue = change_queue
        self.callbacks = callbacks or LoggingCallbacks()

    def run(self, stop_event: threading.Event, delay: Optional[float] = None) -> None:
        """Drain the queue until `stop_event` is set. Raises StoreError."""
        if delay is None:
            delay = self.config.scanner.start_delay_seconds
        if delay and stop_event.wait(delay):
            return

        settle = self.config.monitoring.settle_seconds
        try:
            init_db()
            with open_session() as session:
                repo = Repository(session)
                while not stop_event.is_set():
                    event = next_coalesced(self.change_queue, timeout=0.5, settle=settle)
                    if event is not None:
                        self.apply(event, repo)
        except SQLAlchemyError as exc:
            raise StoreError(f"Record store failure while applying changes: {exc}") from exc

    def apply(self, event: ChangeEvent, repo: Repository) -> None:
        """Apply one change. File-level failures are logged and skipped."""
        self.callbacks.status(event.path.name)
        try:
            if event.action == ChangeAction.RENAMED:
                if event.old_path is not None:
                    self._retire(event.old_path, repo)
                self._reconcile(event.path, repo)
            elif event.action == ChangeAction.DELETED:
                self._retire(event.path, repo)
            else:
                self._reconcile(event.path, repo)
        except (OSError, SidecarError) as exc:
            repo.rollback()
            logger.error(f"✗ {event.path} - {exc}")

    def _retire(self, path: Path, repo: Repository) -> None:
        if retire_missing_photo(path, repo, self.config.mode):
            repo.commit()

    def _reconcile(self, path: Path, repo: Repository) -> None:
        # The file may be gone again by the time we get to it.
        if not path.is_file():
            return
        if not self.config.file_types.is_scannable(path):
            return
        if self.registry.classify(path) != Disposition.WATCHED:
            return
        root = self.registry.root_of(path.parent) or str(path.parent)
        reconcile_file(path, repo, FolderState(path.parent, root), self.config, self.callbacks)
