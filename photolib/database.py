"""SQLite record store: engine construction, sessions and schema setup.

The scanner, the deletion scanner and the change consumer each open their
own session from their own thread, so every connection is created with
WAL journaling and a busy timeout instead of failing on the first lock.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from .config import DATA_DIR, DATABASE_FILE_NAME

DB_PATH = DATA_DIR / DATABASE_FILE_NAME
BUSY_TIMEOUT_MS = 5000


def _on_connect(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
    finally:
        cursor.close()


def make_engine(db_path: Path) -> Engine:
    """Build an engine for `db_path` that is safe to share across threads."""
    new_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    event.listen(new_engine, "connect", _on_connect)
    return new_engine


engine = make_engine(DB_PATH)


def use_database(db_path: Path) -> None:
    """Point the module engine at `db_path`, normally `config.database_path`."""
    global DB_PATH, engine
    if Path(db_path) == DB_PATH:
        return
    engine.dispose()
    DB_PATH = Path(db_path)
    engine = make_engine(DB_PATH)


def get_engine() -> Engine:
    """Return the module engine (tests swap it out)."""
    return engine


@contextmanager
def open_session() -> Iterator[Session]:
    """Session on the current module engine; the caller commits."""
    with Session(get_engine()) as session:
        yield session


def init_db() -> None:
    """Create the folders/photos tables if they are missing."""
    from . import models  # noqa: F401

    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    SQLModel.metadata.create_all(get_engine())


def reset_database() -> None:
    """Drop the database file (and its WAL companions) and start empty."""
    get_engine().dispose()
    for suffix in ("", "-wal", "-shm"):
        companion = DB_PATH.with_name(DB_PATH.name + suffix)
        if companion.exists():
            companion.unlink()
    init_db()


def get_connection() -> sqlite3.Connection:
    """Plain sqlite3 connection for ad-hoc inspection; rows behave like dicts."""
    connection = sqlite3.connect(DB_PATH, timeout=BUSY_TIMEOUT_MS / 1000)
    connection.row_factory = sqlite3.Row
    return connection
