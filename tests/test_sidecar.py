"""Tests for sidecar file access."""

from datetime import datetime, timezone

import pytest

from photolib.errors import SidecarError
from photolib.metadata import PhotoFields
from photolib.sidecar import SidecarFile, read_modified, read_photo_fields, write_photo_fields


def test_accessors_fall_back_to_defaults(tmp_path):
    sidecar = SidecarFile.native(tmp_path)

    assert not sidecar.exists
    assert sidecar.get_string("a.jpg", "caption", "none") == "none"
    assert sidecar.get_bool("a.jpg", "star", True) is True
    assert sidecar.get_int("a.jpg", "rotate", 7) == 7
    assert sidecar.get_datetime("a.jpg", "modified") is None


def test_typed_values_round_trip(tmp_path):
    stamp = datetime(2024, 6, 1, 12, 30, 15, 250000, tzinfo=timezone.utc)
    sidecar = SidecarFile.native(tmp_path)
    sidecar.set_string("a.jpg", "caption", "Beach = fun")
    sidecar.set_bool("a.jpg", "star", True)
    sidecar.set_int("a.jpg", "rotate", 90)
    sidecar.set_datetime("a.jpg", "modified", stamp)
    sidecar.save()

    reloaded = SidecarFile.native(tmp_path)
    assert reloaded.get_string("a.jpg", "caption") == "Beach = fun"
    assert reloaded.get_bool("a.jpg", "star") is True
    assert reloaded.get_int("a.jpg", "rotate") == 90
    assert reloaded.get_datetime("a.jpg", "modified") == stamp


def test_datetime_without_offset_is_local_time(tmp_path):
    (tmp_path / ".photolib").write_text("[a.jpg]\nmodified = 2024-06-01T12:00:00\n", encoding="utf-8")
    sidecar = SidecarFile.native(tmp_path)

    value = sidecar.get_datetime("a.jpg", "modified")

    assert value.tzinfo is timezone.utc
    assert value == datetime(2024, 6, 1, 12, 0, 0).astimezone(timezone.utc)


def test_malformed_values_use_default(tmp_path):
    (tmp_path / ".picasa").write_text(
        "[a.jpg]\nstar = maybe\nrotate = ninety\nmodified = yesterday\n", encoding="utf-8"
    )
    sidecar = SidecarFile.legacy(tmp_path)

    assert sidecar.get_bool("a.jpg", "star", False) is False
    assert sidecar.get_int("a.jpg", "rotate", 0) == 0
    assert sidecar.get_datetime("a.jpg", "modified") is None


def test_unchanged_value_does_not_dirty(tmp_path):
    (tmp_path / ".photolib").write_text("[a.jpg]\ncaption = Beach\n", encoding="utf-8")
    sidecar = SidecarFile.native(tmp_path)

    sidecar.set_string("a.jpg", "caption", "Beach")

    assert not sidecar.dirty


def test_empty_file_is_removed_on_save(tmp_path):
    path = tmp_path / ".picasa"
    path.write_text("[a.jpg]\ncaption = Beach\n", encoding="utf-8")
    sidecar = SidecarFile.legacy(tmp_path)

    assert sidecar.remove_section("a.jpg")
    sidecar.save()

    assert not path.exists()


def test_unreadable_sidecar_raises(tmp_path):
    (tmp_path / ".picasa").write_text("caption = no section header\n", encoding="utf-8")

    with pytest.raises(SidecarError):
        SidecarFile.legacy(tmp_path)


def test_originals_sidecar_location(tmp_path):
    sidecar = SidecarFile.originals(tmp_path)
    assert sidecar.path == tmp_path / ".photolibOriginals" / ".photolib"


def test_read_photo_fields(tmp_path):
    (tmp_path / ".picasa").write_text(
        "[a.jpg]\ncaption = Beach\nstar = yes\nalbums = Summer, Trip\nfaces = Ann;Bob\n"
        "[b.jpg]\nalbums = \n",
        encoding="utf-8",
    )
    sidecar = SidecarFile.legacy(tmp_path)

    fields = read_photo_fields(sidecar, "a.jpg")
    assert fields == PhotoFields(
        caption="Beach", starred=True, albums=["Summer", "Trip"], faces=["Ann", "Bob"]
    )
    assert read_photo_fields(sidecar, "b.jpg") == PhotoFields()
    assert read_photo_fields(sidecar, "missing.jpg") is None


def test_write_photo_fields_skips_blanks(tmp_path):
    stamp = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
    sidecar = SidecarFile.native(tmp_path)

    write_photo_fields(sidecar, "a.jpg", PhotoFields(caption="Lake", albums=[]), modified=stamp)
    sidecar.save()

    reloaded = SidecarFile.native(tmp_path)
    assert reloaded.items("a.jpg") == {"caption": "Lake", "modified": stamp.isoformat(timespec="milliseconds")}
    assert read_modified(reloaded, "a.jpg") == stamp
