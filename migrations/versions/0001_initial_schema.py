"""Initial schema: folders, photos

Revision ID: 0001
Revises: None
Create Date: 2026-10-18 00:00:00
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def _table_exists(name: str) -> bool:
    conn = op.get_bind()
    result = conn.execute(
        sa.text("SELECT 1 FROM sqlite_master WHERE type='table' AND name=:n"),
        {"n": name},
    )
    return result.fetchone() is not None


def upgrade() -> None:
    # Guarded so a database first built by create_all() can be upgraded.
    if not _table_exists("folders"):
        op.create_table(
            "folders",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("path", sa.String(), nullable=False),
            sa.Column("modified_at", sa.DateTime(), nullable=False),
            sa.Column("last_scanned_at", sa.DateTime(), nullable=True),
            sa.Column("watched_root", sa.String(), nullable=False),
            sa.Column("scan_completed", sa.Boolean(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_folders_path", "folders", ["path"], unique=True)

    if not _table_exists("photos"):
        op.create_table(
            "photos",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("filename", sa.String(), nullable=False),
            sa.Column("caption", sa.String(), nullable=False, server_default=""),
            sa.Column("file_type", sa.String(), nullable=False),
            sa.Column("directory", sa.String(), nullable=False),
            sa.Column("path", sa.String(), nullable=False),
            sa.Column("modified_at", sa.DateTime(), nullable=False),
            sa.Column("starred", sa.Boolean(), nullable=False, server_default="0"),
            sa.Column("indexed_at", sa.DateTime(), nullable=True),
            sa.Column("faces", sa.JSON(), nullable=False),
            sa.Column("albums", sa.JSON(), nullable=False),
        )
        op.create_index("ix_photos_path", "photos", ["path"], unique=True)
        op.create_index("ix_photos_directory", "photos", ["directory"])


def downgrade() -> None:
    op.drop_table("photos")
    op.drop_table("folders")
