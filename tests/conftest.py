# tests/conftest.py
from datetime import date

import pytest
from sqlalchemy.orm import sessionmaker

from core.events.domain_events import CapacityEvents
from core.models import Resource
from core.services.conflicts.policy import CapacitySettings, CapacitySettingsProvider
from core.services.recompute import InProcessResourceLocks, RecomputePolicy
from infra.db.base import Base, build_engine
from infra.services import build_service_graph


@pytest.fixture
def engine(tmp_path):
    # file-backed so coordinator sessions on other threads see the same data
    engine = build_engine(f"sqlite:///{(tmp_path / 'capacity.db').as_posix()}")
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def events():
    return CapacityEvents()


@pytest.fixture
def recompute_policy():
    return RecomputePolicy(
        lock_ttl_seconds=30.0,
        lock_timeout_seconds=5.0,
        max_attempts=3,
        backoff_seconds=0.0,
    )


@pytest.fixture
def settings_provider():
    # fixed defaults so CE_* variables in the environment cannot leak in
    return CapacitySettingsProvider(defaults=CapacitySettings())


@pytest.fixture
def build_services(session, session_factory, events, recompute_policy, settings_provider):
    def _build(**overrides):
        options = {
            "session_factory": session_factory,
            "locks": InProcessResourceLocks(ttl_seconds=recompute_policy.lock_ttl_seconds),
            "settings_provider": settings_provider,
            "recompute_policy": recompute_policy,
            "events": events,
        }
        options.update(overrides)
        graph = build_service_graph(session, **options)
        services = graph.as_dict()
        services["events"] = options["events"]
        services["session_factory"] = session_factory
        return services

    return _build


@pytest.fixture
def services(build_services):
    return build_services()


@pytest.fixture
def make_resource(services):
    def _make(name: str = "Dev A", **extra) -> Resource:
        resource = Resource.create(name, **extra)
        services["resource_directory"].add(resource)
        services["session"].commit()
        return resource

    return _make


@pytest.fixture
def resource(make_resource):
    return make_resource("Dev A", organization_id="org-1", workspace_id="ws-1")


@pytest.fixture
def sept():
    """Helper for readable dates in September 2025."""

    def _day(n: int) -> date:
        return date(2025, 9, n)

    return _day
