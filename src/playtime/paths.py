"""Default locations for the playtime store and log file."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from platformdirs import PlatformDirs


APP_NAME = "Playtime"
APP_AUTHOR = "Playtime"

DB_FILENAME = "playtime.sqlite3"
LOG_FILENAME = "playtime.log"


def get_data_dir() -> Path:
    dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=True)
    path = Path(dirs.user_data_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_db_path() -> Path:
    return get_data_dir() / DB_FILENAME


def get_log_path() -> Path:
    return get_data_dir() / LOG_FILENAME


def resolve_db_path(path: Optional[Path]) -> Path:
    """Return ``path`` with ``~`` expanded, or the per-user default store."""
    if path is None:
        return get_db_path()
    return Path(path).expanduser()
