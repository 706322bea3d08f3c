"""Path and timestamp helpers.

All paths stored in the database are absolute: a library spans any number
of watched roots, possibly on different volumes. Timestamps are kept at
millisecond precision so values read back from the store compare equal to
freshly stat'ed ones.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path, PurePath


def is_fully_qualified(path_str: str) -> bool:
    """Return True if `path_str` is an absolute path including its volume.

    Example:
        >>> is_fully_qualified("/home/me/Pictures")
        True
        >>> is_fully_qualified("Pictures")
        False
    """
    if not path_str or "\x00" in path_str:
        return False
    return PurePath(path_str).is_absolute()


def normalize(path: Path | str) -> str:
    """Return the canonical string key used for a folder or file path.

    Trailing separators are dropped and `.`/`..` segments collapsed, but
    symlinks are not resolved so keys match what the user registered.
    """
    text = str(path)
    if not text:
        return text
    return os.path.normpath(text)


def parents_of(path: Path | str):
    """Yield normalized ancestors of `path`, nearest first, ending at the volume root."""
    current = PurePath(normalize(path))
    for parent in current.parents:
        yield str(parent)


def truncate_to_millis(value: datetime) -> datetime:
    """Drop sub-millisecond precision from a datetime."""
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def timestamps_equal(first: datetime | None, second: datetime | None) -> bool:
    """Compare two timestamps at millisecond granularity."""
    if first is None or second is None:
        return first is second
    return truncate_to_millis(first) == truncate_to_millis(second)


def modified_time(path: Path) -> datetime:
    """Return the filesystem-modified time of `path` in UTC, truncated to milliseconds.

    Raises OSError if the path cannot be stat'ed.
    """
    return truncate_to_millis(datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc))
