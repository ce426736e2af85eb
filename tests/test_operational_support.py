from __future__ import annotations

import json
import logging
from datetime import date
from logging.handlers import RotatingFileHandler

import pytest

from core.events.domain_events import CapacityEvents, RecomputationFailed
from core.exceptions import ValidationError
from core.services.recompute import InProcessResourceLocks, RecomputePolicy
from infra.db.locks import SqlAlchemyResourceLockProvider
from infra.logging_config import resolve_level, setup_logging
from infra.operational_support import (
    REDACTED,
    REDACTED_EMAIL,
    OperationalSupport,
    TraceIdLogFilter,
    bind_trace_id,
    current_trace_id,
    set_operational_support,
)
from infra.path import database_url, user_data_dir
from infra.services import build_lock_provider, install_support_subscribers


@pytest.fixture
def support(tmp_path):
    recorder = OperationalSupport(events_path=tmp_path / "support-events.jsonl")
    set_operational_support(recorder)
    try:
        yield recorder
    finally:
        set_operational_support(None)


def test_operational_support_emits_redacted_structured_event(tmp_path):
    events_path = tmp_path / "support-events.jsonl"
    support = OperationalSupport(events_path=events_path)

    with bind_trace_id("inc-test-123"):
        trace_id = support.emit_event(
            event_type="support.test",
            message="token=abc123 alice@example.com",
            data={
                "password": "StrongPass123",
                "contact": "alice@example.com",
                "justification": "client escalation",
                "nested": {"api_token": "secret-value"},
            },
        )

    assert trace_id == "inc-test-123"
    rows = events_path.read_text(encoding="utf-8").splitlines()
    assert len(rows) == 1
    payload = json.loads(rows[0])
    assert payload["trace_id"] == "inc-test-123"
    assert payload["event_type"] == "support.test"
    assert "abc123" not in payload["message"]
    assert "alice@example.com" not in payload["message"]
    assert payload["data"]["password"] == REDACTED
    assert payload["data"]["justification"] == REDACTED
    assert payload["data"]["nested"]["api_token"] == REDACTED
    assert payload["data"]["contact"] == REDACTED_EMAIL


def test_capture_exception_records_crash_event(tmp_path):
    support = OperationalSupport(events_path=tmp_path / "support-events.jsonl")

    try:
        raise RuntimeError("token=bad-token")
    except RuntimeError as exc:
        with bind_trace_id("inc-crash-1"):
            support.capture_exception(
                exc_type=RuntimeError,
                exc_value=exc,
                exc_traceback=exc.__traceback__,
                context="unit-test",
            )

    payload = support.read_events(trace_id="inc-crash-1")[0]
    assert payload["event_type"] == "app.crash"
    assert payload["level"] == "ERROR"
    assert "bad-token" not in payload["message"]
    assert payload["data"]["exception_type"] == "RuntimeError"


def test_read_events_filters_by_type_and_trace(tmp_path):
    support = OperationalSupport(events_path=tmp_path / "support-events.jsonl")
    support.emit_event(event_type="a", message="one", trace_id="t-1")
    support.emit_event(event_type="b", message="two", trace_id="t-1")
    support.emit_event(event_type="a", message="three", trace_id="t-2")

    assert [e["message"] for e in support.read_events(event_type="a")] == ["one", "three"]
    assert [e["message"] for e in support.read_events(trace_id="t-1")] == ["one", "two"]


def test_trace_id_binding_is_scoped():
    assert current_trace_id() is None
    with bind_trace_id() as trace_id:
        assert trace_id.startswith("trc-")
        assert current_trace_id() == trace_id
    assert current_trace_id() is None


def test_trace_filter_stamps_log_records():
    record = logging.LogRecord("capacity", logging.INFO, __file__, 1, "msg", None, None)

    with bind_trace_id("inc-42"):
        TraceIdLogFilter().filter(record)

    assert record.trace_id == "inc-42"


def test_recomputation_failures_become_support_events(support):
    events = CapacityEvents()
    install_support_subscribers(events)

    events.recomputation_failed.emit(
        RecomputationFailed(
            resource_id="r-1",
            range_start=date(2025, 9, 1),
            range_end=date(2025, 9, 30),
            error_code="RECOMPUTATION_FAILED",
            message="database is locked",
            attempts=3,
            retryable=True,
        )
    )

    rows = support.read_events(event_type="capacity.recomputation.failed")
    assert len(rows) == 1
    assert rows[0]["level"] == "ERROR"
    assert rows[0]["data"]["resource_id"] == "r-1"
    assert rows[0]["data"]["range_start"] == "2025-09-01"
    assert rows[0]["data"]["attempts"] == 3


def test_lock_backend_selection(session_factory):
    policy = RecomputePolicy()

    assert isinstance(build_lock_provider(session_factory, policy, "memory"), InProcessResourceLocks)
    assert isinstance(build_lock_provider(session_factory, policy, "database"), SqlAlchemyResourceLockProvider)
    with pytest.raises(ValidationError):
        build_lock_provider(session_factory, policy, "redis")


def test_setup_logging_writes_trace_tagged_lines(tmp_path, support, monkeypatch):
    monkeypatch.setattr("infra.logging_config.install_global_exception_hooks", lambda: None)
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        log_file = setup_logging(tmp_path / "logs", level="DEBUG")
        setup_logging(tmp_path / "logs", level="DEBUG")
        with bind_trace_id("inc-log-7"):
            logging.getLogger("capacity.test").warning("recompute stalled")
        for handler in root.handlers:
            handler.flush()

        assert sum(isinstance(h, RotatingFileHandler) for h in root.handlers) == 1
        assert "trace=inc-log-7 capacity.test - recompute stalled" in log_file.read_text(encoding="utf-8")
        assert support.read_events(event_type="app.logging.initialized")
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)


def test_resolve_level_falls_back_to_info(monkeypatch):
    monkeypatch.setenv("CE_LOG_LEVEL", "chatty")
    assert resolve_level() == logging.INFO
    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level(logging.ERROR) == logging.ERROR


def test_data_dir_and_database_url_follow_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("CE_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("CE_DATABASE_URL", raising=False)

    assert user_data_dir() == tmp_path / "data"
    assert database_url() == f"sqlite:///{(tmp_path / 'data' / 'capacity_engine.db').as_posix()}"

    monkeypatch.setenv("CE_DATABASE_URL", "postgresql://capacity@db/engine")
    assert database_url() == "postgresql://capacity@db/engine"
