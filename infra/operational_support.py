"""
Support-facing telemetry for the capacity engine.

Every line in support-events.jsonl is one SupportEvent. Payloads pass through
redaction first: booking justifications, resolution notes, credentials and
e-mail addresses never reach the file.
"""
from __future__ import annotations

import json
import logging
import os
import re
import sys
import threading
import traceback
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Mapping

from core.events.domain_events import RecomputationFailed
from infra.path import user_data_dir
from infra.version import get_app_version

logger = logging.getLogger(__name__)

REDACTED = "<redacted>"
REDACTED_EMAIL = "<redacted-email>"
EVENTS_FILE_NAME = "support-events.jsonl"

_trace_id_var: ContextVar[str | None] = ContextVar("capacity_trace_id", default=None)

_SENSITIVE_KEYS = frozenset(
    {"password", "token", "secret", "api_key", "authorization", "justification", "note"}
)
_EMAIL = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
_INLINE_SECRET = re.compile(
    r"(?i)\b(password|token|secret|api[_-]?key|authorization)\b\s*[:=]\s*([^\s,;]+)"
)
_MAX_DEPTH = 8


# ----------------------------------------------------------------------
# Trace ids
# ----------------------------------------------------------------------

def create_trace_id() -> str:
    return f"trc-{datetime.now(timezone.utc):%Y%m%d%H%M%S}-{uuid.uuid4().hex[:8]}"


def current_trace_id() -> str | None:
    return (_trace_id_var.get() or "").strip() or None


@contextmanager
def bind_trace_id(trace_id: str | None = None) -> Iterator[str]:
    """Tag log records and support events emitted inside the block."""
    bound = (trace_id or "").strip() or create_trace_id()
    reset_token = _trace_id_var.set(bound)
    try:
        yield bound
    finally:
        _trace_id_var.reset(reset_token)


class TraceIdLogFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = current_trace_id() or "-"
        return True


# ----------------------------------------------------------------------
# Redaction
# ----------------------------------------------------------------------

def _sensitive(key: object) -> bool:
    normalized = str(key or "").strip().lower().replace("-", "_")
    return any(part in normalized for part in _SENSITIVE_KEYS)


def redact_text(value: str) -> str:
    text = _EMAIL.sub(REDACTED_EMAIL, str(value or ""))
    return _INLINE_SECRET.sub(lambda m: f"{m.group(1)}={REDACTED}", text)


def redact_value(value: Any, depth: int = 0) -> Any:
    if depth >= _MAX_DEPTH:
        return "<max-depth>"
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {
            str(key): REDACTED if _sensitive(key) else redact_value(item, depth + 1)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple, set, frozenset)):
        return [redact_value(item, depth + 1) for item in value]
    return redact_text(str(value))


# ----------------------------------------------------------------------
# Event log
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class SupportEvent:
    event_type: str
    message: str
    level: str = "INFO"
    trace_id: str = field(default_factory=lambda: current_trace_id() or create_trace_id())
    data: Mapping[str, Any] | None = None

    def to_json_line(self) -> str:
        payload: dict[str, Any] = {
            "timestamp_utc": datetime.now(timezone.utc).isoformat(),
            "event_type": self.event_type,
            "level": self.level,
            "trace_id": self.trace_id,
            "message": redact_text(self.message),
            "app_version": get_app_version(),
            "pid": os.getpid(),
        }
        if self.data:
            payload["data"] = redact_value(dict(self.data))
        return json.dumps(payload, ensure_ascii=True, sort_keys=True)


class OperationalSupport:
    """Append-only JSONL event log shared by every thread in the process."""

    def __init__(self, events_path: str | Path | None = None) -> None:
        self._events_path = Path(events_path or user_data_dir() / "logs" / EVENTS_FILE_NAME)
        self._events_path.parent.mkdir(parents=True, exist_ok=True)
        self._write_lock = threading.Lock()

    @property
    def events_path(self) -> Path:
        return self._events_path

    def emit_event(
        self,
        *,
        event_type: str,
        message: str,
        level: str = "INFO",
        trace_id: str | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> str:
        event = SupportEvent(
            event_type=(event_type or "").strip() or "support.event",
            message=message or "",
            level=(level or "INFO").strip().upper(),
            trace_id=(trace_id or current_trace_id() or create_trace_id()).strip(),
            data=data,
        )
        self._append(event.to_json_line())
        return event.trace_id

    def record_recomputation_failure(self, failure: RecomputationFailed) -> str:
        return self.emit_event(
            event_type="capacity.recomputation.failed",
            level="ERROR",
            message=f"Recomputation failed for resource {failure.resource_id}: {failure.message}",
            data={
                "resource_id": failure.resource_id,
                "range_start": failure.range_start,
                "range_end": failure.range_end,
                "error_code": failure.error_code,
                "attempts": failure.attempts,
                "retryable": failure.retryable,
            },
        )

    def capture_exception(
        self,
        *,
        exc_type: type[BaseException],
        exc_value: BaseException,
        exc_traceback: Any,
        context: str,
    ) -> str:
        return self.emit_event(
            event_type="app.crash",
            level="ERROR",
            message=f"Unhandled exception in {context}: {exc_value}",
            data={
                "context": context,
                "exception_type": getattr(exc_type, "__name__", str(exc_type)),
                "stacktrace": "".join(traceback.format_exception(exc_type, exc_value, exc_traceback)),
            },
        )

    def read_events(
        self,
        *,
        trace_id: str | None = None,
        event_type: str | None = None,
    ) -> list[dict[str, Any]]:
        if not self._events_path.exists():
            return []
        wanted_trace = (trace_id or "").strip()
        rows: list[dict[str, Any]] = []
        with self._events_path.open(encoding="utf-8", errors="ignore") as handle:
            for line in handle:
                row = _parse_line(line)
                if row is None:
                    continue
                if wanted_trace and str(row.get("trace_id") or "").strip() != wanted_trace:
                    continue
                if event_type and row.get("event_type") != event_type:
                    continue
                rows.append(row)
        return rows

    def _append(self, line: str) -> None:
        with self._write_lock:
            with self._events_path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")


def _parse_line(line: str) -> dict[str, Any] | None:
    if not line.strip():
        return None
    try:
        row = json.loads(line)
    except json.JSONDecodeError:
        return None
    return row if isinstance(row, dict) else None


_support: OperationalSupport | None = None
_hooks_installed = False


def get_operational_support() -> OperationalSupport:
    global _support
    if _support is None:
        _support = OperationalSupport()
    return _support


def set_operational_support(support: OperationalSupport | None) -> None:
    global _support
    _support = support


def install_global_exception_hooks(support: OperationalSupport | None = None) -> None:
    """Record uncaught exceptions from the main thread and worker threads, then defer."""
    global _hooks_installed
    if _hooks_installed:
        return
    recorder = support or get_operational_support()

    def _record(exc_type, exc_value, exc_tb, context: str) -> None:
        try:
            recorder.capture_exception(
                exc_type=exc_type, exc_value=exc_value, exc_traceback=exc_tb, context=context
            )
        except OSError:
            logger.exception("Could not write crash event")

    previous_excepthook = sys.excepthook
    previous_threading_hook = threading.excepthook

    def _excepthook(exc_type, exc_value, exc_tb) -> None:
        _record(exc_type, exc_value, exc_tb, "main-thread")
        previous_excepthook(exc_type, exc_value, exc_tb)

    def _threading_hook(args: Any) -> None:
        name = getattr(args.thread, "name", None) or "worker-thread"
        _record(args.exc_type, args.exc_value, args.exc_traceback, f"thread:{name}")
        previous_threading_hook(args)

    sys.excepthook = _excepthook
    threading.excepthook = _threading_hook
    _hooks_installed = True


__all__ = [
    "EVENTS_FILE_NAME",
    "OperationalSupport",
    "REDACTED",
    "REDACTED_EMAIL",
    "SupportEvent",
    "TraceIdLogFilter",
    "bind_trace_id",
    "create_trace_id",
    "current_trace_id",
    "get_operational_support",
    "set_operational_support",
    "install_global_exception_hooks",
    "redact_text",
    "redact_value",
]
