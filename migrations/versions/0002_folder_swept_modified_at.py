"""Add folders.swept_modified_at for the deletion sweep

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-18 00:00:00
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "0002"
down_revision: str | None = "0001"
branch_labels: str | None = None
depends_on: str | None = None


def _has_column(table: str, column: str) -> bool:
    inspector = sa.inspect(op.get_bind())
    return column in {c["name"] for c in inspector.get_columns(table)}


def upgrade() -> None:
    # NULL makes the next sweep re-check every folder once.
    if not _has_column("folders", "swept_modified_at"):
        with op.batch_alter_table("folders") as batch_op:
            batch_op.add_column(sa.Column("swept_modified_at", sa.DateTime(), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("folders") as batch_op:
        batch_op.drop_column("swept_modified_at")
