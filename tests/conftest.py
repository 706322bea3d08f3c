"""Shared fixtures: temp database, config, folder registry, fixture images."""

import os
from pathlib import Path
from typing import Optional

import pytest
from PIL import Image

from photolib.config import (
    AppMode,
    FileTypesConfig,
    LibraryConfig,
    MonitoringConfig,
    PhotolibConfig,
    ScannerConfig,
)
from photolib.database import init_db, make_engine
from photolib.watchlist import Disposition, WatchRegistry

IMAGE_DESCRIPTION = 0x010E


@pytest.fixture
def test_db(tmp_path, monkeypatch):
    """Point the module engine at a temporary database."""
    db_file = tmp_path / "library.db"
    monkeypatch.setattr("photolib.database.DB_PATH", db_file, raising=True)

    engine = make_engine(db_file)
    monkeypatch.setattr("photolib.database.engine", engine, raising=True)

    init_db()
    return engine


@pytest.fixture
def make_config(tmp_path):
    def _make(mode: AppMode = AppMode.MIGRATE, update_photo_files: bool = False, **file_types) -> PhotolibConfig:
        types = FileTypesConfig()
        types.enabled.update(file_types)
        data_dir = tmp_path / "data"
        data_dir.mkdir(exist_ok=True)
        return PhotolibConfig(
            library=LibraryConfig(mode=mode, update_photo_files=update_photo_files),
            file_types=types,
            scanner=ScannerConfig(
                start_delay_seconds=0, deletion_delay_seconds=0, cancel_settle_seconds=0
            ),
            monitoring=MonitoringConfig(settle_seconds=0),
            data_dir=data_dir,
        )

    return _make


@pytest.fixture
def config(make_config):
    return make_config()


@pytest.fixture
def library(tmp_path) -> Path:
    root = tmp_path / "Pictures"
    root.mkdir()
    return root


@pytest.fixture
def registry(config, library) -> WatchRegistry:
    registry = WatchRegistry(config)
    registry.load()
    registry.reclassify(library, Disposition.WATCHED)
    return registry


@pytest.fixture
def make_image():
    def _make(path: Path, caption: Optional[str] = None, fmt: Optional[str] = None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        img = Image.new("RGB", (8, 8), color="red")
        fmt = fmt or ("PNG" if path.suffix.lower() == ".png" else "JPEG")
        if caption is not None:
            exif = Image.Exif()
            exif[IMAGE_DESCRIPTION] = caption
            img.save(path, format=fmt, exif=exif.tobytes())
        else:
            img.save(path, format=fmt)
        return path

    return _make


@pytest.fixture
def touch_later():
    """Push a path's mtime into the future."""

    def _touch(path: Path, seconds: float = 5.0) -> None:
        stat = path.stat()
        os.utime(path, (stat.st_atime + seconds, stat.st_mtime + seconds))

    return _touch
