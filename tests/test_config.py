"""Tests for config.ini loading."""

import logging

import pytest

from photolib.config import (
    DEFAULT_MODE,
    AppMode,
    FileTypesConfig,
    load_config,
    parse_mode,
    write_default_config,
)


def test_default_config_round_trip(tmp_path):
    config_path = tmp_path / "config.ini"
    write_default_config(config_path, AppMode.NATIVE)

    config = load_config(config_path)

    assert config.mode == AppMode.NATIVE
    assert config.library.update_photo_files is False
    assert config.scanner.deletion_delay_seconds == 10
    assert config.monitoring.enabled is True
    assert config.data_dir == tmp_path
    assert config.watched_list_path == tmp_path / "watched_folders.txt"


def test_missing_config_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.ini")


def test_invalid_mode_falls_back_with_warning(tmp_path, caplog):
    config_path = tmp_path / "config.ini"
    config_path.write_text("[library]\nmode = sideways\n", encoding="utf-8")

    with caplog.at_level(logging.WARNING):
        config = load_config(config_path)

    assert config.mode == DEFAULT_MODE == AppMode.MIGRATE
    assert "sideways" in caplog.text


def test_parse_mode_is_case_insensitive():
    assert parse_mode(" Legacy ") == AppMode.LEGACY
    assert parse_mode(None) == DEFAULT_MODE


def test_file_type_flags(tmp_path):
    config_path = tmp_path / "config.ini"
    config_path.write_text(
        "[file_types]\nwebp = true\ngif = false\nxyz = true\n", encoding="utf-8"
    )

    types = load_config(config_path).file_types

    assert types.is_scannable("/p/a.webp")
    assert not types.is_scannable("/p/a.gif")
    assert not types.is_scannable("/p/a.xyz")


def test_default_file_types():
    types = FileTypesConfig()

    assert types.is_scannable("/p/IMG_0001.JPG")
    assert types.is_scannable("/p/scan.jpeg")
    assert types.is_scannable("/p/scan.tiff")
    assert types.is_scannable("/p/a.png")
    assert not types.is_scannable("/p/clip.mov")
    assert not types.is_scannable("/p/raw.nef")
    assert not types.is_scannable("/p/README")
