"""Where the catalog database and exported reports live."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import env_value

APP_DIR_NAME: Final[str] = "cardmerge"
DEFAULT_DB_FILENAME: Final[str] = "catalog.db"
DEFAULT_REPORT_DIRNAME: Final[str] = "reports"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Local data directory holding the SQLite catalog and report exports.

    Paths are resolved lazily; directories are created only when a caller
    asks for a path it is about to write to.
    """

    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME
    report_dirname: str = DEFAULT_REPORT_DIRNAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def _child(self, name: str, *, create: bool) -> Path:
        root = self.resolve_data_dir()
        if create:
            root.mkdir(parents=True, exist_ok=True)
        return root / name

    def database_path(self, *, ensure: bool = True) -> Path:
        return self._child(self.database_filename, create=ensure)

    def report_dir(self, *, ensure: bool = True) -> Path:
        path = self._child(self.report_dirname, create=ensure)
        if ensure:
            path.mkdir(exist_ok=True)
        return path

    def database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.database_path()}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str


def _platform_data_home() -> Path:
    if os.name == "nt":
        local = env_value("LOCALAPPDATA")
        return Path(local) if local else Path.home() / "AppData" / "Local"
    xdg = env_value("XDG_DATA_HOME")
    return Path(xdg) if xdg else Path.home() / ".local" / "share"


def get_storage_config() -> StorageConfig:
    """``CARDMERGE_DATA_DIR`` wins over the per-user platform data directory."""

    override = env_value("CARDMERGE_DATA_DIR")
    data_dir = Path(override) if override else _platform_data_home() / APP_DIR_NAME
    return StorageConfig(data_dir=data_dir)


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` wins; otherwise a SQLite file in the data directory."""

    uri = env_value("DATABASE_URI")
    if uri is None:
        uri = (storage or get_storage_config()).database_uri()
    return DatabaseConfig(uri=uri)
