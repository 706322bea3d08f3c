"""Alembic migration helpers for photolib.

The only module that imports alembic directly; the CLI goes through the
functions below. Databases created by `init_db()` before any migration ran
carry no version table and are stamped to head on first use.
"""

from __future__ import annotations

import shutil
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Optional

from alembic import command as alembic_command
from alembic.config import Config as AlembicConfig
from alembic.script import ScriptDirectory

from . import database
from .config import PROJECT_ROOT
from .logging_config import get_logger

logger = get_logger(__name__)


def _alembic_cfg() -> AlembicConfig:
    """AlembicConfig for our alembic.ini, with an absolute script location."""
    cfg = AlembicConfig(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    return cfg


def _backup_db(db_path: Optional[Path] = None) -> Optional[Path]:
    """Copy library.db to library.db.bak, replacing any previous backup."""
    db_path = db_path or database.DB_PATH
    if not db_path.exists():
        return None
    backup = db_path.with_suffix(".db.bak")
    shutil.copy2(db_path, backup)
    logger.info(f"Database backed up to {backup}")
    return backup


def _current_revision(db_path: Optional[Path] = None) -> Optional[str]:
    """Revision recorded in the database, or None if it was never stamped."""
    db_path = db_path or database.DB_PATH
    if not db_path.exists():
        return None
    with closing(sqlite3.connect(db_path)) as conn:
        has_table = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='alembic_version'"
        ).fetchone()
        if not has_table:
            return None
        row = conn.execute("SELECT version_num FROM alembic_version").fetchone()
    return row[0] if row else None


def run_migrations(backup: bool = True) -> None:
    """Run ``alembic upgrade head``, backing up library.db first."""
    if backup:
        _backup_db()
    alembic_command.upgrade(_alembic_cfg(), "head")


def stamp_if_needed() -> None:
    """Stamp an unversioned database to head.

    The tables were already created by ``init_db()``, so no migration SQL
    is run. A database that already has a revision is left alone.
    """
    if not database.DB_PATH.exists() or _current_revision() is not None:
        return
    alembic_command.stamp(_alembic_cfg(), "head")


def get_status() -> tuple[str | None, str]:
    """Return (current_revision, head_revision)."""
    script = ScriptDirectory.from_config(_alembic_cfg())
    head_rev: str = script.get_current_head() or "unknown"
    return _current_revision(), head_rev
