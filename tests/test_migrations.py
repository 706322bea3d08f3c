"""Tests for Alembic stamping and upgrades."""

from alembic import command as alembic_command

from photolib.database import get_connection
from photolib.migrations import _alembic_cfg, get_status, run_migrations, stamp_if_needed


def _folder_columns():
    conn = get_connection()
    try:
        return {row["name"] for row in conn.execute("PRAGMA table_info(folders)")}
    finally:
        conn.close()


def test_fresh_database_is_stamped_to_head(test_db):
    stamp_if_needed()

    current, head = get_status()
    assert current == head == "0002"


def test_upgrade_adds_swept_column(test_db):
    with test_db.begin() as conn:
        conn.exec_driver_sql("ALTER TABLE folders DROP COLUMN swept_modified_at")
    alembic_command.stamp(_alembic_cfg(), "0001")
    assert "swept_modified_at" not in _folder_columns()

    run_migrations(backup=False)

    assert "swept_modified_at" in _folder_columns()
    assert get_status() == ("0002", "0002")
