"""photolib CLI entry point."""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Optional

import typer

from photolib.callbacks import LoggingCallbacks
from photolib.config import DEFAULT_CONFIG_PATH, AppMode, PhotolibConfig, load_config, write_default_config
from photolib.database import init_db, open_session, reset_database, use_database
from photolib.deletion import DeletionScanner
from photolib.errors import PhotolibError, StoreError
from photolib.logging_config import setup_logging
from photolib.migrations import get_status, run_migrations, stamp_if_needed
from photolib.path_utils import is_fully_qualified
from photolib.repository import Repository
from photolib.scanner import TreeScanner
from photolib.service import LibraryService
from photolib.watchlist import Disposition, WatchRegistry


__version__ = "0.1.0"

app = typer.Typer(add_completion=False, help="photolib photo library indexer")
logger = logging.getLogger("photolib")

DISPOSITION_NAMES = {
    "watched": Disposition.WATCHED,
    "once": Disposition.SCAN_ONCE,
    "scan_once": Disposition.SCAN_ONCE,
    "excluded": Disposition.EXCLUDED,
    "none": None,
}


def _ensure_config() -> PhotolibConfig:
    try:
        config = load_config()
    except FileNotFoundError:
        typer.echo("[ERROR] config.ini not found. Run: photolib init")
        raise typer.Exit(code=1)
    use_database(config.database_path)
    return config


def _load_registry(config: PhotolibConfig) -> WatchRegistry:
    registry = WatchRegistry(config, LoggingCallbacks())
    registry.load()
    return registry


def _upgrade_database() -> None:
    """Stamp legacy databases, then upgrade to head."""
    init_db()
    stamp_if_needed()
    current, head = get_status()
    if current != head:
        logger.info(f"Migrating database {current} -> {head} ...")
        run_migrations(backup=True)
        logger.info("Migration complete.")


def _run_full_scan(config: PhotolibConfig) -> None:
    registry = _load_registry(config)
    callbacks = LoggingCallbacks()
    never = threading.Event()
    try:
        report = TreeScanner(config, registry, callbacks).run(never, delay=0)
        removed = DeletionScanner(config, callbacks).run(never, delay=0)
    except StoreError as exc:
        typer.echo(f"[ERROR] {exc}")
        raise typer.Exit(code=1)

    typer.echo(
        "✓ Scan completed: "
        f"{report.added} photos added, "
        f"{report.updated} updated, "
        f"{removed.photos_removed} removed, "
        f"{report.skipped} unchanged."
    )
    if report.errors or removed.errors:
        typer.echo(f"[WARN] {len(report.errors) + len(removed.errors)} item(s) could not be processed; see photolib.log")


@app.command()
def init(
    mode: AppMode = typer.Option(AppMode.MIGRATE, "--mode", help="Sidecar mode"),
    watch: Optional[list[Path]] = typer.Option(None, "--watch", help="Folder to watch (repeatable)"),
) -> None:
    """Initialize config.ini and the folder lists."""
    config_path = DEFAULT_CONFIG_PATH
    write_default_config(config_path, mode)
    typer.echo(f"[OK] Config created at {config_path}")

    config = load_config(config_path)
    use_database(config.database_path)
    registry = _load_registry(config)
    for folder in watch or []:
        registry.reclassify(folder.expanduser().resolve(), Disposition.WATCHED)
    registry.persist()
    init_db()


@app.command()
def scan(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
) -> None:
    """Scan watched folders once and update the database."""
    config = _ensure_config()
    setup_logging("DEBUG" if verbose else "INFO", config.data_dir)
    _upgrade_database()
    _run_full_scan(config)


@app.command()
def watch() -> None:
    """Scan, then keep the database in sync with the watched folders until Ctrl-C."""
    config = _ensure_config()
    setup_logging(log_dir=config.data_dir)
    _upgrade_database()

    service = LibraryService(config)
    service.start()
    typer.echo(f"[OK] Watching {len(service.registry.watched_folders)} folder(s). Press Ctrl-C to stop.")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        service.stop()


@app.command()
def folders() -> None:
    """List folders with an explicit disposition."""
    config = _ensure_config()
    registry = _load_registry(config)

    entries = registry.entries()
    if not entries:
        typer.echo("No folders configured. Use: photolib set PATH watched")
        return
    for path in sorted(entries):
        typer.echo(f"  {entries[path].value:<10} {path}")


@app.command()
def classify(path: Path = typer.Argument(..., help="Folder or file to classify")) -> None:
    """Show the effective disposition of a folder."""
    config = _ensure_config()
    registry = _load_registry(config)
    typer.echo(registry.classify(path.expanduser().resolve()).value)


@app.command("set")
def set_disposition(
    path: Path = typer.Argument(..., help="Folder to reclassify"),
    disposition: str = typer.Argument(..., help="watched, once, excluded or none"),
) -> None:
    """Set (or with 'none', clear) a folder's disposition."""
    key = disposition.strip().lower()
    if key not in DISPOSITION_NAMES:
        typer.echo(f"[ERROR] Unknown disposition '{disposition}'. Use: {', '.join(DISPOSITION_NAMES)}")
        raise typer.Exit(code=1)

    folder = path.expanduser().resolve()
    if not is_fully_qualified(str(folder)):
        typer.echo(f"[ERROR] Not a fully qualified path: {path}")
        raise typer.Exit(code=1)

    config = _ensure_config()
    registry = _load_registry(config)
    try:
        with registry.reclassification():
            registry.reclassify(folder, DISPOSITION_NAMES[key])
            registry.persist()
    except PhotolibError as exc:
        typer.echo(f"[ERROR] {exc}")
        raise typer.Exit(code=1)
    typer.echo(f"[OK] {folder} -> {registry.classify(folder).value}")


@app.command()
def stats() -> None:
    """Show library statistics."""
    config = _ensure_config()
    init_db()

    with open_session() as session:
        repo = Repository(session)
        photos = repo.get_all_photos()
        folder_records = repo.get_all_folders()

    captioned = len([p for p in photos if p.caption])
    starred = len([p for p in photos if p.starred])
    pending = len([f for f in folder_records if not f.scan_completed])

    typer.echo("Library Statistics:")
    typer.echo(f"  Database: {config.database_path}")
    typer.echo(f"  Mode: {config.mode.value}")
    typer.echo(f"  Total photos: {len(photos)}")
    typer.echo(f"  Total folders: {len(folder_records)} ({pending} not fully scanned)")
    typer.echo(f"  Captioned: {captioned}")
    typer.echo(f"  Starred: {starred}")


@app.command()
def migrate(
    check: bool = typer.Option(False, "--check", help="Print status and exit (1 if not at head)"),
) -> None:
    """Run pending database migrations (or check status with --check)."""
    _ensure_config()                    # config must exist before we touch the DB
    init_db()                           # ensure tables exist for a brand-new DB

    current, head = get_status()

    if check:
        if current == head:
            typer.echo(f"[OK] Database at {head} (head).")
            raise typer.Exit(code=0)
        typer.echo(f"[WARN] Database behind. Current: {current}, head: {head}")
        raise typer.Exit(code=1)

    if current == head:
        logger.info(f"Database already at {head} (head). Nothing to do.")
        raise typer.Exit(code=0)

    logger.info(f"Migrating database {current} -> {head} ...")
    run_migrations(backup=True)
    logger.info("Migration complete.")


@app.command()
def reset(
    confirm: bool = typer.Option(False, "--confirm", help="Confirm destructive reset"),
) -> None:
    """Reset the database and rescan the watched folders."""
    if not confirm:
        typer.echo("[ERROR] This will delete your database. Use --confirm.")
        raise typer.Exit(code=1)

    config = _ensure_config()
    setup_logging(log_dir=config.data_dir)

    reset_database()
    typer.echo("[INFO] Database reset. Rescanning library...")
    _run_full_scan(config)


if __name__ == "__main__":
    app()
