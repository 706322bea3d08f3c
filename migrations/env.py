"""Alembic migration environment for the photolib index.

Uses the application's own engine so migrations touch the same library.db
the scanners write to.
"""

from __future__ import annotations

from alembic import context
from sqlmodel import SQLModel

from photolib.database import engine

# Registers the folders/photos tables on SQLModel.metadata.
from photolib import models as _models  # noqa: F401

target_metadata = SQLModel.metadata


def run_migrations_online() -> None:
    with engine.connect() as conn:
        context.configure(
            connection=conn,
            target_metadata=target_metadata,
            # SQLite cannot ALTER most columns in place.
            render_as_batch=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    raise RuntimeError("Offline (--sql) migrations are not supported.")

run_migrations_online()
