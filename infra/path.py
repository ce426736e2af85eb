from __future__ import annotations

import os
import sys
from pathlib import Path

APP_NAME = "CapacityEngine"
COMPANY_NAME = "TECHASH"
DB_FILE_NAME = "capacity_engine.db"


def _platform_base() -> Path:
    home = Path.home()
    if sys.platform.startswith("win"):
        return Path(os.getenv("APPDATA") or home / "AppData" / "Roaming")
    if sys.platform == "darwin":
        return home / "Library" / "Application Support"
    return Path(os.getenv("XDG_DATA_HOME") or home / ".local" / "share")


def user_data_dir() -> Path:
    """
    Where logs, support events and the default SQLite file live.
    CE_DATA_DIR overrides the per-platform location (APPDATA, Application
    Support or XDG_DATA_HOME, then TECHASH/CapacityEngine).
    """
    override = (os.getenv("CE_DATA_DIR") or "").strip()
    candidate = Path(override) if override else _platform_base() / COMPANY_NAME / APP_NAME
    try:
        candidate.mkdir(parents=True, exist_ok=True)
    except OSError:
        candidate = Path.home() / f".{APP_NAME.lower()}"
        candidate.mkdir(parents=True, exist_ok=True)
    return candidate


def database_url() -> str:
    """CE_DATABASE_URL wins; otherwise a SQLite file in the data dir."""
    configured = (os.getenv("CE_DATABASE_URL") or "").strip()
    return configured or f"sqlite:///{(user_data_dir() / DB_FILE_NAME).as_posix()}"
