"""Composition root for a running photolib library.

Owns the watch registry, the change queue and the two task groups:

- scanners: the tree scanner and the deletion sweep, one pass each
- watchers: the watchdog observer plus the queue consumer

Each group shares one stop event. A record-store failure in any task is
reported through `callbacks.fatal` and stops that task's group only.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Mapping, Optional

from .callbacks import LibraryCallbacks, LoggingCallbacks
from .config import PhotolibConfig, get_config
from .deletion import DeletionReport, DeletionScanner
from .errors import StoreError
from .logging_config import get_logger
from .monitor import ChangeCapture, ChangeProcessor, ChangeQueue
from .scanner import ScanReport, TreeScanner
from .watchlist import Disposition, WatchRegistry

logger = get_logger(__name__)


class LibraryService:
    def __init__(
        self,
        config: Optional[PhotolibConfig] = None,
        callbacks: Optional[LibraryCallbacks] = None,
        registry: Optional[WatchRegistry] = None,
    ):
        self.config = config or get_config()
        self.callbacks = callbacks or LoggingCallbacks()
        self.registry = registry or WatchRegistry(self.config, self.callbacks)
        self.change_queue = ChangeQueue()
        self.capture = ChangeCapture(self.config, self.registry, self.change_queue, self.callbacks)

        self._scan_stop = threading.Event()
        self._watch_stop = threading.Event()
        self._scan_threads: list[threading.Thread] = []
        self._watch_threads: list[threading.Thread] = []

        self.last_scan: Optional[ScanReport] = None
        self.last_deletion: Optional[DeletionReport] = None

    # --- lifecycle ---

    def start(self) -> None:
        """Load the folder lists and start both task groups."""
        self.registry.load()
        self.start_scanners()
        if self.config.monitoring.enabled:
            self.start_watchers()
        else:
            logger.info("File monitoring disabled")

    def stop(self) -> None:
        self.stop_watchers()
        self.stop_scanners()

    @property
    def scanners_running(self) -> bool:
        return any(t.is_alive() for t in self._scan_threads)

    @property
    def watchers_running(self) -> bool:
        return self.capture.running or any(t.is_alive() for t in self._watch_threads)

    # --- scanners ---

    def start_scanners(self) -> None:
        if self.scanners_running:
            return
        self._scan_stop = stop_event = threading.Event()
        tree = TreeScanner(self.config, self.registry, self.callbacks)
        deletion = DeletionScanner(self.config, self.callbacks)

        def run_tree(event: threading.Event) -> None:
            self.last_scan = tree.run(event)

        def run_deletion(event: threading.Event) -> None:
            self.last_deletion = deletion.run(event)

        self._scan_threads = [
            self._spawn("photolib-scanner", "Scanner", run_tree, stop_event),
            self._spawn("photolib-deletion", "Scanner", run_deletion, stop_event),
        ]

    def stop_scanners(self) -> None:
        self._stop_group(self._scan_stop, self._scan_threads)
        self._scan_threads = []

    def wait_for_scanners(self, timeout: Optional[float] = None) -> None:
        for thread in self._scan_threads:
            thread.join(timeout)

    # --- watchers ---

    def start_watchers(self) -> None:
        if self.watchers_running:
            return
        self._watch_stop = stop_event = threading.Event()
        processor = ChangeProcessor(self.config, self.registry, self.change_queue, self.callbacks)
        self._watch_threads = [
            self._spawn("photolib-changes", "Watcher", processor.run, stop_event),
        ]
        self.capture.start()

    def stop_watchers(self) -> None:
        self.capture.stop()
        self._stop_group(self._watch_stop, self._watch_threads)
        self._watch_threads = []

    # --- reclassification ---

    def reclassify(self, changes: Mapping[str, Optional[Disposition]]) -> None:
        """Apply a batch of disposition changes with all tasks stopped.

        Raises RegistryLockedError if another reclassification is in progress.
        """
        scanners_were_running = self.scanners_running
        watchers_were_running = self.watchers_running
        self.stop_watchers()
        self.stop_scanners()
        try:
            with self.registry.reclassification() as registry:
                for path, disposition in changes.items():
                    registry.reclassify(path, disposition)
                registry.persist()
            logger.info(f"Reclassified {len(changes)} folder(s)")
        finally:
            if scanners_were_running:
                self.start_scanners()
            if watchers_were_running:
                self.start_watchers()

    # --- helpers ---

    def _spawn(
        self,
        name: str,
        group: str,
        work: Callable[[threading.Event], None],
        stop_event: threading.Event,
    ) -> threading.Thread:
        def runner() -> None:
            try:
                work(stop_event)
            except StoreError as exc:
                logger.error(f"{group} task {name} stopped: {exc}", exc_info=True)
                if not stop_event.is_set():
                    stop_event.set()
                    self.callbacks.fatal(f"{group} stopped: {exc}")

        thread = threading.Thread(target=runner, name=name, daemon=True)
        thread.start()
        return thread

    def _stop_group(self, stop_event: threading.Event, threads: list[threading.Thread]) -> None:
        stop_event.set()
        if any(t.is_alive() for t in threads):
            # Let in-flight writes finish before tearing down.
            time.sleep(self.config.scanner.cancel_settle_seconds)
        for thread in threads:
            thread.join()
