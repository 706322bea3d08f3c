"""Deletion sweep for photolib.

Runs beside the tree scanner but works from the index instead of the
filesystem: it looks for records whose files or folders are gone.

1. Folder records are visited newest `modified_at` first, since recently
   modified folders are the likeliest to have lost files.
2. A folder that no longer exists loses all its photo records and its own.
3. A folder whose mtime differs from `swept_modified_at` (the mtime seen
   by the previous sweep, unset before the first one) has every photo
   re-checked. The tree scanner keeps its own `modified_at`, so a scan that
   runs first does not hide deletions from the sweep. A missing file has
   its `.photolib` entry moved into `.photolibOriginals/.photolib` before
   the record is deleted.
4. A folder left without photos is deleted; otherwise the mtime it was
   checked at is stored in `swept_modified_at`.

Folder dispositions are not consulted; only existence matters.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from .callbacks import LibraryCallbacks, LoggingCallbacks
from .config import AppMode, PhotolibConfig
from .database import init_db, open_session
from .errors import SidecarError, StoreError
from .logging_config import get_logger
from .models import Folder
from .path_utils import modified_time, timestamps_equal
from .repository import Repository
from .scanner import ScanIssue
from .sidecar import SidecarFile

logger = get_logger(__name__)


@dataclass
class DeletionReport:
    photos_removed: int = 0
    folders_removed: int = 0
    cancelled: bool = False
    errors: list[ScanIssue] = field(default_factory=list)

    def record_error(self, path: Path, exc: Exception | str) -> None:
        logger.error(f"✗ {path} - {exc}")
        self.errors.append(ScanIssue(path=path, error=str(exc)))


def preserve_sidecar_entry(folder: Path, filename: str) -> bool:
    """Move the native sidecar entry for `filename` into the originals sidecar.

    Returns True if an entry was moved.
    """
    if not folder.is_dir():
        return False
    native = SidecarFile.native(folder)
    values = native.items(filename)
    if not values:
        return False

    originals = SidecarFile.originals(folder)
    if originals.has_section(filename):
        originals.remove_section(filename)
    for key, value in values.items():
        originals.set_string(filename, key, value)
    originals.save()

    native.remove_section(filename)
    native.save()
    logger.debug(f"Preserved sidecar entry for deleted {filename}")
    return True


def retire_missing_photo(path: Path, repo: Repository, mode: AppMode) -> bool:
    """Drop the record for a photo whose file no longer exists.

    The caller commits. Returns True if a record was deleted; a file that
    still exists is left alone. Outside legacy mode the file's `.photolib`
    entry is preserved first; legacy mode leaves every sidecar untouched.
    """
    if path.exists():
        return False
    if mode != AppMode.LEGACY:
        preserve_sidecar_entry(path.parent, path.name)
    photo = repo.get_photo(path)
    if photo is None:
        return False
    repo.delete_photo(photo)
    logger.info(f"[-] {path}")
    return True


class DeletionScanner:
    def __init__(self, config: PhotolibConfig, callbacks: Optional[LibraryCallbacks] = None):
        self.config = config
        self.callbacks = callbacks or LoggingCallbacks()

    def run(self, stop_event: threading.Event, delay: Optional[float] = None) -> DeletionReport:
        """Sweep every folder record once.

        Raises StoreError if the record store fails.
        """
        report = DeletionReport()
        if delay is None:
            delay = self.config.scanner.deletion_delay_seconds
        if delay and stop_event.wait(delay):
            report.cancelled = True
            return report

        try:
            init_db()
            with open_session() as session:
                repo = Repository(session)
                for folder in repo.folders_newest_first():
                    if stop_event.is_set():
                        report.cancelled = True
                        break
                    folder_path = Path(folder.path)
                    try:
                        self._sweep_folder(folder, repo, stop_event, report)
                        repo.commit()
                    except (OSError, SidecarError) as exc:
                        repo.rollback()
                        report.record_error(folder_path, exc)
        except SQLAlchemyError as exc:
            raise StoreError(f"Record store failure during deletion sweep: {exc}") from exc

        if report.photos_removed or report.folders_removed:
            logger.info(
                f"Deletion sweep removed {report.photos_removed} photos "
                f"and {report.folders_removed} folders."
            )
        return report

    def _sweep_folder(
        self,
        folder: Folder,
        repo: Repository,
        stop_event: threading.Event,
        report: DeletionReport,
    ) -> None:
        folder_path = Path(folder.path)

        if not folder_path.is_dir():
            report.photos_removed += repo.delete_photos_in_folder(folder_path)
            repo.delete_folder(folder)
            report.folders_removed += 1
            logger.info(f"[-] Folder: {folder_path}")
            return

        folder_mtime = modified_time(folder_path)
        if folder.swept_modified_at is not None and timestamps_equal(
            folder_mtime, folder.swept_modified_at
        ):
            return

        self.callbacks.status(f"Checking {folder_path}")
        for photo in repo.photos_in_folder(folder_path):
            if stop_event.is_set():
                report.cancelled = True
                return
            if retire_missing_photo(Path(photo.path), repo, self.config.mode):
                report.photos_removed += 1

        if repo.count_photos_in_folder(folder_path) == 0:
            repo.delete_folder(folder)
            report.folders_removed += 1
            logger.info(f"[-] Folder: {folder_path}")
        else:
            repo.mark_folder_swept(folder, folder_mtime)
