"""Tests for the deletion sweep."""

import os
import shutil
import threading
from unittest.mock import Mock

from sqlmodel import Session

from photolib.config import AppMode
from photolib.database import get_engine
from photolib.deletion import DeletionScanner, retire_missing_photo
from photolib.monitor import ChangeAction, ChangeEvent, ChangeProcessor, ChangeQueue
from photolib.path_utils import modified_time
from photolib.repository import Repository
from photolib.scanner import TreeScanner
from photolib.sidecar import SidecarFile
from photolib.watchlist import Disposition, WatchRegistry


def _scan(config, registry):
    return TreeScanner(config, registry, Mock()).run(threading.Event(), delay=0)


def _sweep(config):
    return DeletionScanner(config, Mock()).run(threading.Event(), delay=0)


def _photo(path):
    with Session(get_engine()) as session:
        return Repository(session).get_photo(path)


def _folder(path):
    with Session(get_engine()) as session:
        return Repository(session).get_folder(path)


def _native_registry(make_config, library):
    config = make_config(mode=AppMode.NATIVE)
    registry = WatchRegistry(config)
    registry.load()
    registry.reclassify(library, Disposition.WATCHED)
    return config, registry


def test_missing_folder_drops_all_its_records(test_db, config, registry, library, make_image):
    make_image(library / "a.jpg")
    make_image(library / "Trip" / "b.jpg")
    make_image(library / "Trip" / "c.jpg")
    _scan(config, registry)

    shutil.rmtree(library / "Trip")
    report = _sweep(config)

    assert report.photos_removed == 2
    assert report.folders_removed == 1
    assert _folder(library / "Trip") is None
    assert _photo(library / "Trip" / "b.jpg") is None
    assert _photo(library / "a.jpg") is not None


def test_last_photo_removed_drops_folder_and_preserves_sidecar(
    test_db, make_config, library, make_image, touch_later
):
    config, registry = _native_registry(make_config, library)
    trip = library / "Trip"
    make_image(trip / "a.jpg")
    (trip / ".photolib").write_text("[a.jpg]\ncaption = Keep me\nstar = yes\n", encoding="utf-8")
    _scan(config, registry)
    assert _photo(trip / "a.jpg").caption == "Keep me"

    (trip / "a.jpg").unlink()
    touch_later(trip)
    report = _sweep(config)

    assert report.photos_removed == 1
    assert report.folders_removed == 1
    assert _photo(trip / "a.jpg") is None
    assert _folder(trip) is None

    originals = SidecarFile.originals(trip)
    assert originals.get_string("a.jpg", "caption") == "Keep me"
    assert originals.get_bool("a.jpg", "star") is True
    assert not SidecarFile.native(trip).has_section("a.jpg")


def test_removed_file_among_others_records_swept_mtime(test_db, config, registry, library, make_image, touch_later):
    make_image(library / "a.jpg")
    make_image(library / "b.jpg")
    _scan(config, registry)

    (library / "b.jpg").unlink()
    touch_later(library)
    report = _sweep(config)

    assert report.photos_removed == 1
    assert _photo(library / "b.jpg") is None
    assert _photo(library / "a.jpg") is not None
    folder = _folder(library)
    assert folder is not None
    assert folder.swept_modified_at == modified_time(library)


def test_folder_unchanged_since_last_sweep_is_not_rechecked(test_db, config, registry, library, make_image):
    make_image(library / "a.jpg")
    make_image(library / "b.jpg")
    _scan(config, registry)
    _sweep(config)
    recorded = _folder(library).swept_modified_at.timestamp()

    (library / "b.jpg").unlink()
    os.utime(library, (recorded, recorded))
    report = _sweep(config)

    assert report.photos_removed == 0
    assert _photo(library / "b.jpg") is not None


def test_excluded_subfolder_records_survive_while_files_exist(test_db, config, registry, library, make_image):
    make_image(library / "Old" / "a.jpg")
    _scan(config, registry)
    registry.reclassify(library / "Old", Disposition.EXCLUDED)

    report = _sweep(config)

    assert report.photos_removed == 0
    assert _photo(library / "Old" / "a.jpg") is not None


def test_retire_leaves_existing_files_alone(test_db, config, registry, library, make_image):
    path = make_image(library / "a.jpg")
    _scan(config, registry)

    with Session(get_engine()) as session:
        repo = Repository(session)
        assert retire_missing_photo(path, repo, config.mode) is False
        assert repo.get_photo(path) is not None


def test_cancelled_sweep_changes_nothing(test_db, config, registry, library, make_image):
    make_image(library / "Trip" / "a.jpg")
    _scan(config, registry)
    shutil.rmtree(library / "Trip")

    stop_event = threading.Event()
    stop_event.set()
    report = DeletionScanner(config, Mock()).run(stop_event, delay=0)

    assert report.cancelled
    assert _folder(library / "Trip") is not None


def test_sweep_after_rescan_retires_deleted_file(test_db, config, registry, library, make_image, touch_later):
    make_image(library / "a.jpg")
    make_image(library / "b.jpg")
    _scan(config, registry)
    _sweep(config)

    (library / "b.jpg").unlink()
    touch_later(library)
    _scan(config, registry)
    report = _sweep(config)

    assert report.photos_removed == 1
    assert _photo(library / "b.jpg") is None
    assert _photo(library / "a.jpg") is not None


def test_sweep_after_rescan_drops_emptied_folder(
    test_db, make_config, library, make_image, touch_later
):
    config, registry = _native_registry(make_config, library)
    trip = library / "Trip"
    make_image(trip / "a.jpg")
    (trip / ".photolib").write_text("[a.jpg]\ncaption = Keep me\n", encoding="utf-8")
    _scan(config, registry)

    (trip / "a.jpg").unlink()
    touch_later(trip)
    _scan(config, registry)
    report = _sweep(config)

    assert report.folders_removed == 1
    assert _photo(trip / "a.jpg") is None
    assert _folder(trip) is None
    assert SidecarFile.originals(trip).get_string("a.jpg", "caption") == "Keep me"


def test_sweep_after_change_consumer_retires_deleted_file(
    test_db, config, registry, library, make_image, touch_later
):
    make_image(library / "a.jpg")
    make_image(library / "b.jpg")
    _scan(config, registry)
    _sweep(config)

    (library / "b.jpg").unlink()
    touch_later(library)
    touch_later(library / "a.jpg")
    processor = ChangeProcessor(config, registry, ChangeQueue(), Mock())
    with Session(get_engine()) as session:
        processor.apply(ChangeEvent(ChangeAction.CHANGED, library / "a.jpg"), Repository(session))
    report = _sweep(config)

    assert report.photos_removed == 1
    assert _photo(library / "b.jpg") is None


def test_legacy_mode_leaves_sidecars_alone(test_db, make_config, library, make_image, touch_later):
    config = make_config(mode=AppMode.LEGACY)
    registry = WatchRegistry(config)
    registry.load()
    registry.reclassify(library, Disposition.WATCHED)
    make_image(library / "a.jpg")
    make_image(library / "b.jpg")
    (library / ".photolib").write_text("[b.jpg]\ncaption = Native\n", encoding="utf-8")
    (library / ".picasa").write_text("[b.jpg]\ncaption = Legacy\n", encoding="utf-8")
    _scan(config, registry)

    (library / "b.jpg").unlink()
    touch_later(library)
    report = _sweep(config)

    assert report.photos_removed == 1
    assert SidecarFile.native(library).get_string("b.jpg", "caption") == "Native"
    assert SidecarFile.legacy(library).get_string("b.jpg", "caption") == "Legacy"
    assert not SidecarFile.originals(library).exists
