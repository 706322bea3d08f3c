"""Data Access Layer for photolib.

Encapsulates the Folders and Photos collections using SQLModel/SQLAlchemy.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional

from sqlmodel import Session, select, col, func

from .models import Folder, Photo, utc_now
from .path_utils import normalize


class Repository:
    """Key-indexed access to Folder and Photo records.

    Folders are keyed by their path, photos by their full path. All public
    methods accept Path objects or strings and normalize them before use.
    Callers control when to commit.
    """

    def __init__(self, session: Session):
        self.session = session

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    # --- Folders ---

    def get_folder(self, path: Path | str) -> Optional[Folder]:
        statement = select(Folder).where(Folder.path == normalize(path))
        return self.session.exec(statement).first()

    def upsert_folder(
        self,
        path: Path | str,
        *,
        watched_root: Path | str,
        modified_at: datetime,
        scan_completed: bool,
    ) -> tuple[Folder, bool]:
        """Insert or refresh a folder record.

        Returns:
            (folder, created) where created is True on first insert.
        """
        folder = self.get_folder(path)
        now = utc_now()
        created = folder is None

        if folder is None:
            folder = Folder(
                path=normalize(path),
                modified_at=modified_at,
                last_scanned_at=now,
                watched_root=normalize(watched_root),
                scan_completed=scan_completed,
            )
        else:
            folder.modified_at = modified_at
            folder.last_scanned_at = now
            folder.scan_completed = scan_completed

        self.session.add(folder)
        self.session.flush()
        return folder, created

    def mark_folder_scanned(self, path: Path | str, modified_at: datetime) -> bool:
        """Flag an existing folder record as completely scanned.

        Returns False if there is no record for the folder.
        """
        folder = self.get_folder(path)
        if folder is None:
            return False
        folder.modified_at = modified_at
        folder.last_scanned_at = utc_now()
        folder.scan_completed = True
        self.session.add(folder)
        self.session.flush()
        return True

    def mark_folder_swept(self, folder: Folder, modified_at: datetime) -> None:
        """Record the folder mtime the deletion sweep last checked against."""
        folder.swept_modified_at = modified_at
        self.session.add(folder)
        self.session.flush()

    def folders_newest_first(self) -> List[Folder]:
        """All folders ordered by most recently modified first."""
        statement = select(Folder).order_by(col(Folder.modified_at).desc())
        return list(self.session.exec(statement).all())

    def delete_folder(self, folder: Folder) -> None:
        self.session.delete(folder)
        self.session.flush()

    # --- Photos ---

    def get_photo(self, path: Path | str) -> Optional[Photo]:
        statement = select(Photo).where(Photo.path == normalize(path))
        return self.session.exec(statement).first()

    def insert_photo(self, **fields: Any) -> Photo:
        photo = Photo(**fields)
        self.session.add(photo)
        self.session.flush()
        return photo

    def update_photo(self, photo: Photo, changes: dict[str, Any]) -> bool:
        """Apply only the fields whose values differ.

        Returns True if anything was written.
        """
        dirty = {
            key: value for key, value in changes.items() if getattr(photo, key) != value
        }
        if not dirty:
            return False
        for key, value in dirty.items():
            setattr(photo, key, value)
        self.session.add(photo)
        self.session.flush()
        return True

    def photos_in_folder(self, directory: Path | str) -> List[Photo]:
        statement = select(Photo).where(Photo.directory == normalize(directory))
        return list(self.session.exec(statement).all())

    def count_photos_in_folder(self, directory: Path | str) -> int:
        statement = (
            select(func.count())
            .select_from(Photo)
            .where(Photo.directory == normalize(directory))
        )
        return self.session.exec(statement).one()

    def delete_photo(self, photo: Photo) -> None:
        self.session.delete(photo)
        self.session.flush()

    def delete_photos_in_folder(self, directory: Path | str) -> int:
        """Delete every photo stored directly in `directory`. Returns the count."""
        photos = self.photos_in_folder(directory)
        for photo in photos:
            self.session.delete(photo)
        self.session.flush()
        return len(photos)

    # --- Read Methods (used by main) ---

    def get_all_photos(self) -> List[Photo]:
        return list(self.session.exec(select(Photo).order_by(Photo.path)).all())

    def get_all_folders(self) -> List[Folder]:
        return list(self.session.exec(select(Folder).order_by(Folder.path)).all())
