"""Filesystem scanner for photolib.

Responsible for syncing image files under the watched roots into the
index. For every qualifying file the filesystem, the index record and the
folder's sidecar files are reconciled according to the operating mode:

- legacy:  `.picasa` fills blank fields, `.photolib` is left alone
- native:  `.photolib` fills blanks, or wins outright when its entry is
           newer than the index record; `.picasa` is ignored
- migrate: `.photolib` as in native, then `.picasa` fills what is still
           blank and the file's `.picasa` entry is removed

The scanner never deletes records; that is the deletion scanner's job.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from functools import cached_property
from pathlib import Path
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from .callbacks import LibraryCallbacks, LoggingCallbacks
from .config import AppMode, PhotolibConfig
from .database import init_db, open_session
from .errors import RegistryLockedError, SidecarError, StoreError
from .logging_config import get_logger
from .metadata import PhotoFields, read_image_fields, write_caption
from .models import Photo, utc_now
from .path_utils import modified_time, normalize, truncate_to_millis
from .repository import Repository
from .sidecar import (
    ORIGINALS_FOLDER_NAME,
    SidecarFile,
    read_modified,
    read_photo_fields,
    write_photo_fields,
)
from .watchlist import Disposition, WatchRegistry

logger = get_logger(__name__)

ADDED = "added"
UPDATED = "updated"
SKIPPED = "skipped"


@dataclass
class ScanIssue:
    path: Path
    error: str


@dataclass
class ScanReport:
    """Counters plus the per-node error channel of one scan."""

    added: int = 0
    updated: int = 0
    skipped: int = 0
    folders: int = 0
    cancelled: bool = False
    errors: list[ScanIssue] = field(default_factory=list)

    def count(self, outcome: str) -> None:
        setattr(self, outcome, getattr(self, outcome) + 1)

    def record_error(self, path: Path, exc: Exception | str) -> None:
        logger.error(f"✗ {path} - {exc}")
        self.errors.append(ScanIssue(path=path, error=str(exc)))


class FolderState:
    """Sidecars and bookkeeping for the folder currently being reconciled.

    Sidecars are opened on first use so a folder whose unused sidecar is
    damaged can still be scanned.
    """

    def __init__(self, folder: Path, watched_root: Path | str):
        self.folder = folder
        self.watched_root = Path(watched_root)
        self.recorded = False

    @cached_property
    def legacy(self) -> SidecarFile:
        return SidecarFile.legacy(self.folder)

    @cached_property
    def native(self) -> SidecarFile:
        return SidecarFile.native(self.folder)

    def save(self) -> None:
        if "native" in self.__dict__:
            self.native.save()
        if "legacy" in self.__dict__:
            self.legacy.save()


def _record_fields(photo: Photo) -> PhotoFields:
    return PhotoFields(
        caption=photo.caption or None,
        starred=photo.starred,
        albums=list(photo.albums or []) or None,
        faces=list(photo.faces or []) or None,
    )


def _normalized(fields: Optional[PhotoFields]) -> PhotoFields:
    if fields is None:
        return PhotoFields()
    return PhotoFields().fill_blanks(fields)


def merge_sidecars(
    fields: PhotoFields,
    mode: AppMode,
    state: FolderState,
    filename: str,
    index_time: Optional[datetime],
) -> tuple[PhotoFields, Optional[PhotoFields], Optional[PhotoFields]]:
    """Fold the sidecar entries for `filename` into `fields`.

    Returns (merged, native_entry, legacy_entry).
    """
    native_entry = None
    legacy_entry = None

    if mode in (AppMode.NATIVE, AppMode.MIGRATE):
        native_entry = read_photo_fields(state.native, filename)
        if native_entry is not None:
            native_time = read_modified(state.native, filename)
            index_is_newer = index_time is not None and (
                native_time is None or native_time <= index_time
            )
            if index_is_newer:
                fields = fields.fill_blanks(native_entry)
            else:
                fields = fields.overlay(native_entry)

    if mode in (AppMode.LEGACY, AppMode.MIGRATE):
        legacy_entry = read_photo_fields(state.legacy, filename)
        fields = fields.fill_blanks(legacy_entry)

    return fields, native_entry, legacy_entry


def reconcile_file(
    path: Path,
    repo: Repository,
    state: FolderState,
    config: PhotolibConfig,
    callbacks: Optional[LibraryCallbacks] = None,
) -> str:
    """Reconcile one image file into the index.

    Returns ADDED, UPDATED or SKIPPED. Raises OSError/SidecarError for
    problems with this file and SQLAlchemyError for store failures.
    """
    mode = config.mode
    filename = path.name
    file_mtime = modified_time(path)
    photo = repo.get_photo(path)
    image_fields: Optional[PhotoFields] = None

    # 1. Filesystem vs index: the newer source is master for its own fields.
    if photo is None:
        image_fields = read_image_fields(path)
        fields = image_fields
        index_time = None
    else:
        record = _record_fields(photo)
        if file_mtime > truncate_to_millis(photo.modified_at):
            image_fields = read_image_fields(path)
            fields = record.overlay(image_fields)
        else:
            fields = record
        index_time = photo.indexed_at

    # 2. Sidecars, by mode.
    fields, native_entry, legacy_entry = merge_sidecars(
        fields, mode, state, filename, index_time
    )

    # 3. Upsert the photo and its folder.
    now = truncate_to_millis(utc_now())
    values = {
        "filename": filename,
        "file_type": path.suffix.lower(),
        "directory": normalize(path.parent),
        "modified_at": file_mtime,
        "caption": fields.caption or "",
        "starred": bool(fields.starred),
        "albums": list(fields.albums or []),
        "faces": list(fields.faces or []),
    }

    if photo is None:
        photo = repo.insert_photo(path=normalize(path), indexed_at=now, **values)
        outcome = ADDED
    else:
        dirty = {k: v for k, v in values.items() if getattr(photo, k) != v}
        if dirty:
            dirty["indexed_at"] = now
            repo.update_photo(photo, dirty)
            outcome = UPDATED
        else:
            outcome = SKIPPED

    folder_created = False
    if not state.recorded:
        _, folder_created = repo.upsert_folder(
            path.parent,
            watched_root=state.watched_root,
            modified_at=modified_time(path.parent),
            scan_completed=False,
        )

    # 4. Optionally push the caption into the image itself.
    if config.library.update_photo_files and mode != AppMode.LEGACY and fields.caption:
        if image_fields is None:
            image_fields = read_image_fields(path)
        if image_fields.caption != fields.caption and write_caption(path, fields.caption):
            # Our own write must not look like an external edit next time.
            repo.update_photo(photo, {"modified_at": modified_time(path)})

    repo.commit()
    state.recorded = True
    if folder_created and callbacks is not None:
        callbacks.folder_added(path.parent)

    if mode != AppMode.LEGACY and not fields.is_empty():
        if _normalized(native_entry) != _normalized(fields):
            write_photo_fields(state.native, filename, fields, modified=photo.indexed_at)
    if mode == AppMode.MIGRATE and legacy_entry is not None:
        state.legacy.remove_section(filename)
    state.save()

    if outcome != SKIPPED:
        logger.debug(f"{outcome}: {path}")
    return outcome


class TreeScanner:
    """Full recursive pass over every watched root."""

    def __init__(
        self,
        config: PhotolibConfig,
        registry: WatchRegistry,
        callbacks: Optional[LibraryCallbacks] = None,
    ):
        self.config = config
        self.registry = registry
        self.callbacks = callbacks or LoggingCallbacks()
        self._visited: set[str] = set()

    def run(self, stop_event: threading.Event, delay: Optional[float] = None) -> ScanReport:
        """Scan all Watched roots, then the ScanOnce roots.

        Raises StoreError if the record store fails.
        """
        report = ScanReport()
        if delay is None:
            delay = self.config.scanner.start_delay_seconds
        if delay and stop_event.wait(delay):
            report.cancelled = True
            return report

        self._visited = set()
        try:
            init_db()
            with open_session() as session:
                repo = Repository(session)
                for root in self.registry.watched_folders:
                    if stop_event.is_set():
                        report.cancelled = True
                        break
                    self._scan_root(Path(root), repo, stop_event, report, Disposition.WATCHED)

                if not report.cancelled:
                    self._scan_once_roots(repo, stop_event, report)
        except SQLAlchemyError as exc:
            raise StoreError(f"Record store failure during scan: {exc}") from exc

        logger.info(
            f"Scan {'cancelled' if report.cancelled else 'complete'}: "
            f"{report.added} added, {report.updated} updated, "
            f"{report.skipped} unchanged, {len(report.errors)} errors."
        )
        return report

    def _scan_once_roots(self, repo: Repository, stop_event: threading.Event, report: ScanReport) -> None:
        for root in self.registry.scan_once_folders:
            if stop_event.is_set():
                report.cancelled = True
                return
            errors_before = len(report.errors)
            self._scan_root(Path(root), repo, stop_event, report, Disposition.SCAN_ONCE)
            if report.cancelled or len(report.errors) != errors_before:
                continue

            try:
                self.registry.reclassify(root, Disposition.EXCLUDED)
                self.registry.persist()
                logger.info(f"[ONCE] {root} scanned, now excluded")
            except RegistryLockedError:
                logger.info(f"[ONCE] {root} scanned; folder list locked, will retry next run")

    def _scan_root(
        self,
        root: Path,
        repo: Repository,
        stop_event: threading.Event,
        report: ScanReport,
        disposition: Disposition,
    ) -> None:
        if not root.is_dir():
            report.record_error(root, "folder not found")
            return
        self.callbacks.status(f"Scanning {root}")
        try:
            self._scan_folder(root, root, repo, stop_event, report, disposition)
        except (OSError, SidecarError) as exc:
            repo.rollback()
            report.record_error(root, exc)

    def _scan_folder(
        self,
        folder: Path,
        root: Path,
        repo: Repository,
        stop_event: threading.Event,
        report: ScanReport,
        disposition: Disposition,
    ) -> None:
        key = normalize(folder)
        if key in self._visited:
            return
        self._visited.add(key)

        entries = sorted(folder.iterdir())
        files = [
            p for p in entries
            if p.is_file() and self.config.file_types.is_scannable(p)
        ]
        subfolders = [
            p for p in entries
            if p.is_dir() and not p.is_symlink() and p.name != ORIGINALS_FOLDER_NAME
        ]

        logger.info(f"[SCAN] {folder} ({len(files)} files)")
        state = FolderState(folder, root)
        for file_path in files:
            if stop_event.is_set():
                report.cancelled = True
                return
            self.callbacks.status(file_path.name)
            try:
                outcome = reconcile_file(file_path, repo, state, self.config, self.callbacks)
            except (OSError, SidecarError) as exc:
                repo.rollback()
                report.record_error(file_path, exc)
                continue
            report.count(outcome)

        for sub in subfolders:
            if stop_event.is_set():
                report.cancelled = True
                return
            if self.registry.classify(sub) != disposition:
                continue
            try:
                self._scan_folder(sub, root, repo, stop_event, report, disposition)
            except (OSError, SidecarError) as exc:
                repo.rollback()
                report.record_error(sub, exc)

        if report.cancelled:
            return
        report.folders += 1
        if repo.mark_folder_scanned(folder, modified_time(folder)):
            repo.commit()
