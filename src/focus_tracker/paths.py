"""Locate the tracker's data directory and database file."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from platformdirs import PlatformDirs


APP_NAME = "FocusTracker"
APP_AUTHOR = "FocusTracker"
DB_ENV_VAR = "FOCUS_TRACKER_DB"


def get_data_dir() -> Path:
    dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=True)
    path = Path(dirs.user_data_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_db_path(override: Optional[Path] = None) -> Path:
    """Resolve the database path: explicit override, then env var, then data dir."""
    if override is not None:
        return Path(override)
    from_env = os.environ.get(DB_ENV_VAR)
    if from_env:
        return Path(from_env).expanduser()
    return get_data_dir() / "focus.sqlite3"
