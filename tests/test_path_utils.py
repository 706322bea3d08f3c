import os
from datetime import datetime
from pathlib import Path

from photolib.path_utils import (
    is_fully_qualified,
    modified_time,
    normalize,
    parents_of,
    timestamps_equal,
    truncate_to_millis,
)


def test_is_fully_qualified():
    assert is_fully_qualified("/home/me/Pictures")
    assert not is_fully_qualified("Pictures")
    assert not is_fully_qualified("")


def test_normalize_drops_trailing_separator():
    assert normalize("/home/me/Pictures/") == normalize("/home/me/Pictures")
    assert normalize("/home/me/./Pictures") == normalize("/home/me/Pictures")


def test_parents_nearest_first():
    parents = list(parents_of("/a/b/c"))
    assert parents == [normalize("/a/b"), normalize("/a"), normalize("/")]


def test_sub_millisecond_difference_compares_equal():
    first = datetime(2024, 6, 1, 12, 0, 0, 123456)
    second = datetime(2024, 6, 1, 12, 0, 0, 123999)

    assert timestamps_equal(first, second)
    assert not timestamps_equal(first, datetime(2024, 6, 1, 12, 0, 0, 124000))
    assert truncate_to_millis(first).microsecond == 123000


def test_modified_time_is_millisecond_precision(tmp_path):
    path = tmp_path / "a.jpg"
    path.write_bytes(b"x")
    os.utime(path, ns=(1_700_000_000_123_456_789, 1_700_000_000_123_456_789))

    value = modified_time(Path(path))

    assert value.microsecond == 123000
