"""Photo metadata for photolib.

`PhotoFields` is the unit every metadata source is reduced to before
reconciliation: the image file itself, the index record, and the two
sidecar formats. Image files are read with Pillow; captions are written
back into JPEGs with piexif so the pixel data is never re-encoded.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import piexif
from PIL import ExifTags, Image
from pydantic import BaseModel

from .logging_config import get_logger

logger = get_logger(__name__)

# Image types whose embedded caption we read.
CAPTION_EXTENSIONS = {".jpg", ".jpeg", ".tif", ".tiff"}
# Image types we can write a caption into without re-encoding.
WRITABLE_EXTENSIONS = {".jpg", ".jpeg"}

CAPTION_FIELD = "Caption"

_TAG_IDS = {name: tag for tag, name in ExifTags.TAGS.items()}
_XP_TITLE = 0x9C9B


class PhotoFields(BaseModel):
    """Metadata fields that can come from any source (all optional)."""

    model_config = {"extra": "ignore"}

    caption: Optional[str] = None
    starred: Optional[bool] = None
    albums: Optional[list[str]] = None
    faces: Optional[list[str]] = None

    @staticmethod
    def _is_blank(value: Any) -> bool:
        return value is None or value == "" or value == [] or value is False

    def fill_blanks(self, other: Optional["PhotoFields"]) -> "PhotoFields":
        """Return a copy where blank fields are taken from `other`."""
        if other is None:
            return self.model_copy()
        merged = self.model_dump()
        for key, value in other.model_dump().items():
            if self._is_blank(merged[key]) and not self._is_blank(value):
                merged[key] = value
        return PhotoFields(**merged)

    def overlay(self, other: Optional["PhotoFields"]) -> "PhotoFields":
        """Return a copy where every non-blank field of `other` wins.

        An explicit `starred=False` in `other` counts as a value, so a newer
        source can clear a star.
        """
        if other is None:
            return self.model_copy()
        merged = other.fill_blanks(self)
        if other.starred is not None:
            merged.starred = other.starred
        return merged

    def is_empty(self) -> bool:
        return all(self._is_blank(v) for v in self.model_dump().values())


class ImageMetadata:
    """Named-field access to the EXIF data embedded in an image file."""

    def __init__(self, path: Path):
        self.path = path
        with Image.open(path) as img:
            exif = img.getexif()
            self._base = dict(exif)
            self._sub = dict(exif.get_ifd(ExifTags.IFD.Exif))

    def get(self, name: str, default: str = "") -> str:
        """Return the named field as text, or `default` if absent."""
        if name == CAPTION_FIELD:
            return self._caption() or default
        tag = _TAG_IDS.get(name)
        if tag is None:
            return default
        value = self._base.get(tag, self._sub.get(tag))
        if value is None:
            return default
        return _as_text(value)

    def _caption(self) -> str:
        description = self._base.get(_TAG_IDS["ImageDescription"])
        if description:
            text = _as_text(description)
            if text:
                return text
        xp_title = self._base.get(_XP_TITLE)
        if isinstance(xp_title, (bytes, tuple)):
            raw = bytes(xp_title)
            return raw.decode("utf-16-le", errors="ignore").rstrip("\x00").strip()
        return ""


def _as_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace").rstrip("\x00").strip()
    return str(value).rstrip("\x00").strip()


def read_image_fields(path: Path) -> PhotoFields:
    """Read the fields embedded in an image file. Unreadable images yield empty fields."""
    if path.suffix.lower() not in CAPTION_EXTENSIONS:
        return PhotoFields()
    try:
        caption = ImageMetadata(path).get(CAPTION_FIELD)
    except Exception as exc:
        logger.debug(f"No embedded metadata for {path.name}: {exc}")
        return PhotoFields()
    return PhotoFields(caption=caption or None)


def write_caption(path: Path, caption: str) -> bool:
    """Store `caption` in the image's EXIF ImageDescription.

    Returns True if the file was rewritten.
    """
    if path.suffix.lower() not in WRITABLE_EXTENSIONS:
        return False
    try:
        exif_dict = piexif.load(str(path))
        exif_dict["0th"][piexif.ImageIFD.ImageDescription] = caption.encode("utf-8")
        piexif.insert(piexif.dump(exif_dict), str(path))
    except Exception as exc:
        logger.error(f"✗ {path.name} - Unable to write caption: {exc}")
        return False
    return True
