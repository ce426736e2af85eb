from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from infra.operational_support import (
    TraceIdLogFilter,
    get_operational_support,
    install_global_exception_hooks,
)
from infra.path import user_data_dir

LOG_FILE_NAME = "capacity-engine.log"
FILE_FORMAT = "%(asctime)s [%(levelname)s] trace=%(trace_id)s %(name)s - %(message)s"
CONSOLE_FORMAT = "%(levelname)s [trace=%(trace_id)s]: %(message)s"
MAX_LOG_BYTES = 1_000_000
LOG_BACKUPS = 5

# per-statement output from these drowns out recompute logs
_QUIET_LOGGERS = ("sqlalchemy.engine", "alembic.runtime.migration")


def resolve_level(level: str | int | None = None) -> int:
    if isinstance(level, int):
        return level
    name = (level or os.getenv("CE_LOG_LEVEL") or "INFO").strip().upper()
    numeric = logging.getLevelName(name)
    return numeric if isinstance(numeric, int) else logging.INFO


def _handlers(log_file: Path) -> list[logging.Handler]:
    rotating = RotatingFileHandler(
        log_file, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
    )
    rotating.setFormatter(logging.Formatter(FILE_FORMAT))
    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    trace_filter = TraceIdLogFilter()
    for handler in (rotating, console):
        handler.addFilter(trace_filter)
    return [rotating, console]


def setup_logging(log_dir: Path | None = None, level: str | int | None = None) -> Path:
    """Route the root logger to a rotating file plus stderr; safe to call twice."""
    target_dir = log_dir or user_data_dir() / "logs"
    target_dir.mkdir(parents=True, exist_ok=True)
    log_file = target_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(resolve_level(level))
    for existing in list(root.handlers):
        root.removeHandler(existing)
        if isinstance(existing, logging.FileHandler):
            existing.close()
    for handler in _handlers(log_file):
        root.addHandler(handler)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    install_global_exception_hooks()
    root.info("Logging to %s", log_file)
    get_operational_support().emit_event(
        event_type="app.logging.initialized",
        message=f"Logging initialized at {log_file}",
        data={"log_file": str(log_file)},
    )
    return log_file
