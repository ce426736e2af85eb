from __future__ import annotations

import os
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Any, Callable

from sqlalchemy.orm import Session, sessionmaker

from core.events.domain_events import CapacityEvents, RecomputationFailed, capacity_events
from core.exceptions import ValidationError
from core.interfaces import ResourceLockProvider
from core.services.allocation import AllocationService
from core.services.capacity import CapacityCalendar
from core.services.conflicts import (
    CapacitySettingsProvider,
    ConflictLifecycleManager,
    IntervalAggregator,
    RecurrencePolicy,
    build_recurrence_policy,
)
from core.services.conflicts.service import ConflictService
from core.services.recompute import (
    InProcessResourceLocks,
    RecomputationCoordinator,
    RecomputePolicy,
    load_recompute_policy,
)
from infra.db.locks import SqlAlchemyResourceLockProvider
from infra.db.repositories import (
    SqlAlchemyAllocationRepository,
    SqlAlchemyCapacityCalendarRepository,
    SqlAlchemyConflictRepository,
    SqlAlchemyOrganizationSettingsRepository,
    SqlAlchemyResourceDirectory,
    build_recompute_repositories,
)
from infra.operational_support import get_operational_support


def _record_recomputation_failure(event: RecomputationFailed) -> None:
    get_operational_support().record_recomputation_failure(event)


def install_support_subscribers(events: CapacityEvents | None = None) -> None:
    (events or capacity_events).recomputation_failed.connect(_record_recomputation_failure)


def build_lock_provider(
    session_factory: Callable[[], Session],
    policy: RecomputePolicy,
    backend: str | None = None,
) -> ResourceLockProvider:
    mode = (backend if backend is not None else os.getenv("CE_LOCK_BACKEND", "memory")).strip().lower()
    if mode == "memory":
        return InProcessResourceLocks(ttl_seconds=policy.lock_ttl_seconds)
    if mode == "database":
        return SqlAlchemyResourceLockProvider(session_factory, ttl_seconds=policy.lock_ttl_seconds)
    raise ValidationError(f"Unknown lock backend {mode!r}.", code="CAPACITY_INVALID_SETTING")


@dataclass(frozen=True)
class ServiceGraph:
    session: Session
    resource_directory: SqlAlchemyResourceDirectory
    capacity_repo: SqlAlchemyCapacityCalendarRepository
    org_settings_repo: SqlAlchemyOrganizationSettingsRepository
    settings_provider: CapacitySettingsProvider
    capacity_calendar: CapacityCalendar
    interval_aggregator: IntervalAggregator
    lifecycle_manager: ConflictLifecycleManager
    lock_provider: ResourceLockProvider
    recomputation_coordinator: RecomputationCoordinator
    allocation_service: AllocationService
    conflict_service: ConflictService

    def as_dict(self) -> dict[str, Any]:
        return {
            "session": self.session,
            "resource_directory": self.resource_directory,
            "capacity_repo": self.capacity_repo,
            "org_settings_repo": self.org_settings_repo,
            "settings_provider": self.settings_provider,
            "capacity_calendar": self.capacity_calendar,
            "interval_aggregator": self.interval_aggregator,
            "lifecycle_manager": self.lifecycle_manager,
            "lock_provider": self.lock_provider,
            "recomputation_coordinator": self.recomputation_coordinator,
            "allocation_service": self.allocation_service,
            "conflict_service": self.conflict_service,
        }


def build_service_graph(
    session: Session,
    *,
    session_factory: Callable[[], Session] | None = None,
    locks: ResourceLockProvider | None = None,
    executor: Executor | None = None,
    settings_provider: CapacitySettingsProvider | None = None,
    recompute_policy: RecomputePolicy | None = None,
    events: CapacityEvents | None = None,
    recurrence_policy: RecurrencePolicy | None = None,
) -> ServiceGraph:
    """
    Wire repositories and services around a caller session.
    The coordinator opens its own sessions from session_factory; by default
    that is a sessionmaker bound to the caller session's engine.
    """
    if session_factory is None:
        session_factory = sessionmaker(bind=session.get_bind(), autoflush=False, autocommit=False)
    events = events or capacity_events
    recompute_policy = recompute_policy or load_recompute_policy()

    resource_directory = SqlAlchemyResourceDirectory(session)
    allocation_repo = SqlAlchemyAllocationRepository(session)
    capacity_repo = SqlAlchemyCapacityCalendarRepository(session)
    conflict_repo = SqlAlchemyConflictRepository(session)
    org_settings_repo = SqlAlchemyOrganizationSettingsRepository(session)

    settings_provider = settings_provider or CapacitySettingsProvider()
    defaults = settings_provider.defaults
    capacity_calendar = CapacityCalendar(
        capacity_repo,
        resource_directory,
        baseline_hours_per_day=defaults.baseline_hours_per_day,
    )
    interval_aggregator = IntervalAggregator(allocation_repo, defaults.weights)
    lifecycle_manager = ConflictLifecycleManager(recurrence_policy or build_recurrence_policy())
    lock_provider = locks or build_lock_provider(session_factory, recompute_policy)

    coordinator = RecomputationCoordinator(
        session_factory,
        build_recompute_repositories,
        lock_provider,
        settings_provider,
        lifecycle=lifecycle_manager,
        policy=recompute_policy,
        events=events,
        executor=executor,
    )
    allocation_service = AllocationService(
        session=session,
        allocation_repo=allocation_repo,
        resource_directory=resource_directory,
        coordinator=coordinator,
        settings_provider=settings_provider,
        org_settings_repo=org_settings_repo,
        events=events,
    )
    conflict_service = ConflictService(session, conflict_repo, coordinator)

    return ServiceGraph(
        session=session,
        resource_directory=resource_directory,
        capacity_repo=capacity_repo,
        org_settings_repo=org_settings_repo,
        settings_provider=settings_provider,
        capacity_calendar=capacity_calendar,
        interval_aggregator=interval_aggregator,
        lifecycle_manager=lifecycle_manager,
        lock_provider=lock_provider,
        recomputation_coordinator=coordinator,
        allocation_service=allocation_service,
        conflict_service=conflict_service,
    )


__all__ = [
    "ServiceGraph",
    "build_service_graph",
    "build_lock_provider",
    "install_support_subscribers",
]
