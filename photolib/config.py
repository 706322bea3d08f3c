"""Config management for photolib.

Reads `config.ini` from the data directory (beside main.py unless DATA_DIR is set).
When running as PyInstaller onefile, PROJECT_ROOT is the directory containing the executable.
"""

from __future__ import annotations

import configparser
import dataclasses
import enum
import os
import pathlib
import sys
from typing import Optional

from .logging_config import get_logger

logger = get_logger(__name__)


def _get_project_root() -> pathlib.Path:
    if getattr(sys, "frozen", False):
        return pathlib.Path(sys.executable).resolve().parent
    return pathlib.Path(__file__).resolve().parents[1]


PROJECT_ROOT = _get_project_root()

# DATA_DIR holds all persistent state (config.ini, library.db, watch lists).
DATA_DIR = pathlib.Path(os.environ.get("DATA_DIR", str(PROJECT_ROOT)))
DEFAULT_CONFIG_PATH = DATA_DIR / "config.ini"

WATCHED_LIST_NAME = "watched_folders.txt"
SCAN_ONCE_LIST_NAME = "scan_once_folders.txt"
EXCLUDED_LIST_NAME = "excluded_folders.txt"
DATABASE_FILE_NAME = "library.db"


class AppMode(str, enum.Enum):
    """Which sidecar format wins during reconciliation."""

    LEGACY = "legacy"
    MIGRATE = "migrate"
    NATIVE = "native"


DEFAULT_MODE = AppMode.MIGRATE

# Recognized file types: config key -> extensions it enables.
RECOGNIZED_EXTENSIONS: dict[str, tuple[str, ...]] = {
    "avi": (".avi",),
    "bmp": (".bmp",),
    "gif": (".gif",),
    "jpg": (".jpg", ".jpeg"),
    "mov": (".mov",),
    "nef": (".nef",),
    "png": (".png",),
    "psd": (".psd",),
    "tga": (".tga",),
    "tif": (".tif", ".tiff"),
    "webp": (".webp",),
}

DEFAULT_FILE_TYPES: dict[str, bool] = {
    "avi": False,
    "bmp": True,
    "gif": True,
    "jpg": True,
    "mov": False,
    "nef": False,
    "png": True,
    "psd": False,
    "tga": False,
    "tif": True,
    "webp": False,
}


@dataclasses.dataclass
class LibraryConfig:
    mode: AppMode = DEFAULT_MODE
    update_photo_files: bool = False


@dataclasses.dataclass
class FileTypesConfig:
    enabled: dict[str, bool] = dataclasses.field(
        default_factory=lambda: dict(DEFAULT_FILE_TYPES)
    )

    @property
    def extensions(self) -> tuple[str, ...]:
        """Every extension currently enabled for scanning."""
        return tuple(
            ext
            for key, exts in RECOGNIZED_EXTENSIONS.items()
            if self.enabled.get(key, False)
            for ext in exts
        )

    def is_scannable(self, path: pathlib.Path | str) -> bool:
        """Return True if the file's extension is enabled in configuration."""
        suffix = pathlib.PurePath(str(path)).suffix.lower()
        if not suffix:
            return False
        return suffix in self.extensions


@dataclasses.dataclass
class ScannerConfig:
    start_delay_seconds: float = 0.5
    deletion_delay_seconds: float = 10.0
    cancel_settle_seconds: float = 1.0


@dataclasses.dataclass
class MonitoringConfig:
    enabled: bool = True
    settle_seconds: float = 0.05


@dataclasses.dataclass
class PhotolibConfig:
    library: LibraryConfig
    file_types: FileTypesConfig
    scanner: ScannerConfig
    monitoring: MonitoringConfig
    data_dir: pathlib.Path = DATA_DIR

    @property
    def mode(self) -> AppMode:
        return self.library.mode

    @property
    def database_path(self) -> pathlib.Path:
        return self.data_dir / DATABASE_FILE_NAME

    @property
    def watched_list_path(self) -> pathlib.Path:
        return self.data_dir / WATCHED_LIST_NAME

    @property
    def scan_once_list_path(self) -> pathlib.Path:
        return self.data_dir / SCAN_ONCE_LIST_NAME

    @property
    def excluded_list_path(self) -> pathlib.Path:
        return self.data_dir / EXCLUDED_LIST_NAME


def _parse_bool(value: str, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_mode(value: Optional[str]) -> AppMode:
    """Parse an operating mode, falling back to the default on bad input."""
    if value is None:
        return DEFAULT_MODE
    try:
        return AppMode(value.strip().lower())
    except ValueError:
        logger.warning(
            f"Invalid mode '{value}' in config, using '{DEFAULT_MODE.value}'"
        )
        return DEFAULT_MODE


def load_config(config_path: Optional[pathlib.Path] = None) -> PhotolibConfig:
    """Load configuration from config.ini.

    Defaults to `config.ini` in the data directory.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    parser = configparser.ConfigParser()
    parser.read(path, encoding="utf-8")

    library = LibraryConfig(
        mode=parse_mode(parser.get("library", "mode", fallback=DEFAULT_MODE.value)),
        update_photo_files=_parse_bool(
            parser.get("library", "update_photo_files", fallback="false"), False
        ),
    )

    enabled = dict(DEFAULT_FILE_TYPES)
    if parser.has_section("file_types"):
        for key, value in parser.items("file_types"):
            key = key.strip().lower().lstrip(".")
            if key not in RECOGNIZED_EXTENSIONS:
                logger.warning(f"Unknown file type '{key}' in config, ignoring")
                continue
            enabled[key] = _parse_bool(value, DEFAULT_FILE_TYPES[key])

    scanner = ScannerConfig(
        start_delay_seconds=parser.getfloat(
            "scanner", "start_delay_seconds", fallback=0.5
        ),
        deletion_delay_seconds=parser.getfloat(
            "scanner", "deletion_delay_seconds", fallback=10.0
        ),
        cancel_settle_seconds=parser.getfloat(
            "scanner", "cancel_settle_seconds", fallback=1.0
        ),
    )

    monitoring = MonitoringConfig(
        enabled=_parse_bool(
            parser.get("monitoring", "enabled", fallback="true"), True
        ),
        settle_seconds=parser.getfloat(
            "monitoring", "settle_seconds", fallback=0.05
        ),
    )

    return PhotolibConfig(
        library=library,
        file_types=FileTypesConfig(enabled=enabled),
        scanner=scanner,
        monitoring=monitoring,
        data_dir=path.parent,
    )


def write_default_config(config_path: pathlib.Path, mode: AppMode = DEFAULT_MODE) -> None:
    """Write a config.ini populated with default settings."""
    parser = configparser.ConfigParser()

    parser["library"] = {
        "mode": mode.value,
        "update_photo_files": "false",
    }
    parser["file_types"] = {
        key: "true" if value else "false" for key, value in DEFAULT_FILE_TYPES.items()
    }
    parser["scanner"] = {
        "start_delay_seconds": "0.5",
        "deletion_delay_seconds": "10",
        "cancel_settle_seconds": "1",
    }
    parser["monitoring"] = {
        "enabled": "true",
        "settle_seconds": "0.05",
    }

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        parser.write(handle)


_cached_config: Optional[PhotolibConfig] = None


def get_config() -> PhotolibConfig:
    """Return the cached config. Loads from disk on first call."""
    global _cached_config
    if _cached_config is None:
        _cached_config = load_config()
    return _cached_config


def reset_config_cache() -> None:
    """Clear the cached config (useful for tests)."""
    global _cached_config
    _cached_config = None
