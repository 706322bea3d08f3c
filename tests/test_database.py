"""Record store setup and logging handler installation."""

import logging
from datetime import datetime, timezone

from photolib import database
from photolib.database import get_connection, init_db, open_session, reset_database
from photolib.logging_config import LOG_FILE_NAME, setup_logging
from photolib.repository import Repository


def test_connections_use_wal(test_db):
    with test_db.connect() as conn:
        mode = conn.exec_driver_sql("PRAGMA journal_mode").scalar()
    assert mode.lower() == "wal"


def test_reset_database_starts_empty(test_db, tmp_path):
    with open_session() as session:
        repo = Repository(session)
        repo.upsert_folder(
            tmp_path / "pics",
            watched_root=tmp_path,
            modified_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            scan_completed=True,
        )
        repo.commit()

    reset_database()

    conn = get_connection()
    try:
        assert conn.execute("SELECT COUNT(*) FROM folders").fetchone()[0] == 0
    finally:
        conn.close()
    assert database.DB_PATH.exists()


def test_init_db_creates_missing_parent(tmp_path, monkeypatch):
    db_file = tmp_path / "nested" / "library.db"
    monkeypatch.setattr("photolib.database.DB_PATH", db_file)
    monkeypatch.setattr("photolib.database.engine", database.make_engine(db_file))

    init_db()

    assert db_file.exists()


def test_setup_logging_replaces_its_handlers(tmp_path):
    root = logging.getLogger()
    before = list(root.handlers)
    try:
        setup_logging("INFO", tmp_path)
        setup_logging("DEBUG", tmp_path)
        added = [h for h in root.handlers if h not in before]
        assert len(added) == 2

        logging.getLogger("photolib.test").warning("hello log file")
        for handler in added:
            handler.flush()
        assert "hello log file" in (tmp_path / LOG_FILE_NAME).read_text(encoding="utf-8")
    finally:
        for handler in [h for h in root.handlers if h not in before]:
            root.removeHandler(handler)
            handler.close()


def test_use_database_follows_config(make_config, monkeypatch):
    monkeypatch.setattr("photolib.database.DB_PATH", database.DB_PATH)
    monkeypatch.setattr("photolib.database.engine", database.engine)
    config = make_config()

    database.use_database(config.database_path)
    init_db()

    assert database.DB_PATH == config.database_path
    assert config.database_path.exists()
    assert str(database.get_engine().url).endswith(str(config.database_path))
    database.get_engine().dispose()


def test_timestamps_round_trip_as_utc(test_db, tmp_path):
    stamp = datetime(2024, 6, 1, 12, 30, 15, 250000, tzinfo=timezone.utc)
    with open_session() as session:
        repo = Repository(session)
        repo.insert_photo(
            path=str(tmp_path / "a.jpg"),
            filename="a.jpg",
            file_type=".jpg",
            directory=str(tmp_path),
            modified_at=stamp,
            indexed_at=stamp,
        )
        repo.commit()

    with open_session() as session:
        photo = Repository(session).get_photo(tmp_path / "a.jpg")

    assert photo.modified_at == stamp
    assert photo.modified_at.tzinfo is not None
    assert photo.indexed_at.utcoffset().total_seconds() == 0
