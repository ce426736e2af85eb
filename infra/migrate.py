from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def migration_dir() -> Path:
    location = PROJECT_ROOT / "migration"
    if not (location / "alembic.ini").exists():
        raise RuntimeError(f"Alembic scripts not found under {location}")
    return location


def alembic_config(db_url: str) -> Config:
    location = migration_dir()
    cfg = Config(str(location / "alembic.ini"))
    cfg.set_main_option("script_location", str(location))
    # configparser interpolation would eat a literal % in passwords
    cfg.set_main_option("sqlalchemy.url", db_url.replace("%", "%%"))
    # the host process already configured logging
    cfg.attributes["configure_logger"] = False
    return cfg


def run_migrations(db_url: str, revision: str = "head") -> None:
    logger.info("Upgrading capacity schema to %s", revision)
    command.upgrade(alembic_config(db_url), revision)
