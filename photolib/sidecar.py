"""Per-folder sidecar files.

Each folder may carry two INI-style side files describing the photos it
holds, one section per image filename:

- the legacy `.picasa` file (caption, star, albums, faces)
- the native `.photolib` file (the same keys plus a `modified` timestamp)

Deleted photos keep their native entries in
`.photolibOriginals/.photolib` inside the same folder.
"""

from __future__ import annotations

import configparser
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .errors import SidecarError
from .metadata import PhotoFields

LEGACY_SIDECAR_NAME = ".picasa"
NATIVE_SIDECAR_NAME = ".photolib"
ORIGINALS_FOLDER_NAME = ".photolibOriginals"

CAPTION_KEY = "caption"
STAR_KEY = "star"
ALBUMS_KEY = "albums"
FACES_KEY = "faces"
MODIFIED_KEY = "modified"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class SidecarFile:
    """Read/write access to one sidecar file by section + key.

    Changes stay in memory until `save()`. A file left without sections is
    removed from disk on save.
    """

    def __init__(self, path: Path):
        self.path = path
        self._dirty = False
        self._parser = configparser.ConfigParser(
            interpolation=None, delimiters=("=",), strict=False
        )
        if path.exists():
            try:
                with path.open("r", encoding="utf-8") as handle:
                    self._parser.read_file(handle)
            except (configparser.Error, UnicodeDecodeError, OSError) as exc:
                raise SidecarError(f"Unable to read sidecar {path}: {exc}") from exc

    @classmethod
    def legacy(cls, folder: Path) -> "SidecarFile":
        return cls(folder / LEGACY_SIDECAR_NAME)

    @classmethod
    def native(cls, folder: Path) -> "SidecarFile":
        return cls(folder / NATIVE_SIDECAR_NAME)

    @classmethod
    def originals(cls, folder: Path) -> "SidecarFile":
        return cls(folder / ORIGINALS_FOLDER_NAME / NATIVE_SIDECAR_NAME)

    @property
    def exists(self) -> bool:
        return self.path.exists()

    @property
    def dirty(self) -> bool:
        return self._dirty

    def sections(self) -> list[str]:
        return self._parser.sections()

    def has_section(self, section: str) -> bool:
        return self._parser.has_section(section)

    def items(self, section: str) -> dict[str, str]:
        if not self._parser.has_section(section):
            return {}
        return dict(self._parser.items(section))

    def remove_section(self, section: str) -> bool:
        removed = self._parser.remove_section(section)
        if removed:
            self._dirty = True
        return removed

    # --- getters ---

    def get_string(self, section: str, key: str, default: str = "") -> str:
        return self._parser.get(section, key, fallback=default)

    def get_bool(self, section: str, key: str, default: bool = False) -> bool:
        raw = self._parser.get(section, key, fallback=None)
        if raw is None:
            return default
        value = raw.strip().lower()
        if value in _TRUE_VALUES:
            return True
        if value in _FALSE_VALUES:
            return False
        return default

    def get_int(self, section: str, key: str, default: int = 0) -> int:
        raw = self._parser.get(section, key, fallback=None)
        if raw is None:
            return default
        try:
            return int(raw.strip())
        except ValueError:
            return default

    def get_datetime(
        self, section: str, key: str, default: Optional[datetime] = None
    ) -> Optional[datetime]:
        raw = self._parser.get(section, key, fallback=None)
        if raw is None:
            return default
        try:
            value = datetime.fromisoformat(raw.strip())
        except ValueError:
            return default
        # Entries without an offset were written in local time.
        return value.astimezone(timezone.utc)

    # --- setters ---

    def set_string(self, section: str, key: str, value: str) -> None:
        if not self._parser.has_section(section):
            self._parser.add_section(section)
        if self._parser.get(section, key, fallback=None) != value:
            self._parser.set(section, key, value)
            self._dirty = True

    def set_bool(self, section: str, key: str, value: bool) -> None:
        self.set_string(section, key, "yes" if value else "no")

    def set_int(self, section: str, key: str, value: int) -> None:
        self.set_string(section, key, str(value))

    def set_datetime(self, section: str, key: str, value: datetime) -> None:
        self.set_string(section, key, value.isoformat(timespec="milliseconds"))

    def save(self) -> None:
        """Write pending changes atomically."""
        if not self._dirty:
            return
        try:
            if not self._parser.sections():
                if self.path.exists():
                    self.path.unlink()
            else:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    dir=self.path.parent, prefix=self.path.name, suffix=".tmp"
                )
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as handle:
                        self._parser.write(handle)
                    os.replace(tmp_name, self.path)
                except BaseException:
                    Path(tmp_name).unlink(missing_ok=True)
                    raise
        except OSError as exc:
            raise SidecarError(f"Unable to write sidecar {self.path}: {exc}") from exc
        self._dirty = False


def _split(raw: str, sep: str) -> list[str]:
    return [item.strip() for item in raw.split(sep) if item.strip()]


def read_photo_fields(sidecar: SidecarFile, filename: str) -> Optional[PhotoFields]:
    """Return the photo fields stored for `filename`, or None if there is no entry."""
    if not sidecar.has_section(filename):
        return None
    star_raw = sidecar.get_string(filename, STAR_KEY, "")
    return PhotoFields(
        caption=sidecar.get_string(filename, CAPTION_KEY, "") or None,
        starred=sidecar.get_bool(filename, STAR_KEY) if star_raw else None,
        albums=_split(sidecar.get_string(filename, ALBUMS_KEY, ""), ",") or None,
        faces=_split(sidecar.get_string(filename, FACES_KEY, ""), ";") or None,
    )


def read_modified(sidecar: SidecarFile, filename: str) -> Optional[datetime]:
    return sidecar.get_datetime(filename, MODIFIED_KEY)


def write_photo_fields(
    sidecar: SidecarFile,
    filename: str,
    fields: PhotoFields,
    modified: Optional[datetime] = None,
) -> None:
    """Store non-blank fields for `filename`; `save()` is left to the caller."""
    if fields.caption:
        sidecar.set_string(filename, CAPTION_KEY, fields.caption)
    if fields.starred is not None:
        sidecar.set_bool(filename, STAR_KEY, fields.starred)
    if fields.albums:
        sidecar.set_string(filename, ALBUMS_KEY, ",".join(fields.albums))
    if fields.faces:
        sidecar.set_string(filename, FACES_KEY, ";".join(fields.faces))
    if modified is not None:
        sidecar.set_datetime(filename, MODIFIED_KEY, modified)

