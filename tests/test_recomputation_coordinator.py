import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from core.exceptions import BusinessRuleError, InvalidDateRange, LockTimeoutError, RecomputationError
from core.models import AllocationType, RecomputationState, ResourceAllocation
from core.services.recompute import (
    InProcessResourceLocks,
    RecomputationCoordinator,
    RecomputationRun,
    RecomputePolicy,
    RecomputeRequest,
)
from infra.db.conflict import SqlAlchemyConflictRepository
from infra.db.repositories import SqlAlchemyAllocationRepository, build_recompute_repositories


def _seed_overlap(session, resource, day=date(2025, 9, 10)):
    """Write two overlapping hard bookings without triggering recomputation."""
    repo = SqlAlchemyAllocationRepository(session)
    for project_id in ("p-1", "p-2"):
        repo.add(
            ResourceAllocation.create(
                resource_id=resource.id,
                project_id=project_id,
                start_date=day,
                end_date=day,
                allocation_percentage=60,
                type=AllocationType.HARD,
            )
        )
    session.commit()


def _coordinator(session_factory, settings_provider, events, *, repositories_factory=None, locks=None, **policy):
    options = {"lock_ttl_seconds": 30.0, "lock_timeout_seconds": 2.0, "max_attempts": 3, "backoff_seconds": 0.0}
    options.update(policy)
    return RecomputationCoordinator(
        session_factory,
        repositories_factory or build_recompute_repositories,
        locks or InProcessResourceLocks(ttl_seconds=options["lock_ttl_seconds"]),
        settings_provider,
        policy=RecomputePolicy(**options),
        events=events,
    )


class FlakyConflictRepository(SqlAlchemyConflictRepository):
    failures_left = 0

    def add(self, conflict):
        super().add(conflict)
        if FlakyConflictRepository.failures_left > 0:
            FlakyConflictRepository.failures_left -= 1
            raise OperationalError("INSERT INTO resource_conflicts", {}, Exception("disk I/O error"))


def _flaky_repositories(session):
    repos = build_recompute_repositories(session)
    return type(repos)(
        allocations=repos.allocations,
        conflicts=FlakyConflictRepository(session),
        capacity=repos.capacity,
        resources=repos.resources,
        org_settings=repos.org_settings,
    )


def test_successful_run_walks_every_state(services, resource, sept):
    result = services["recomputation_coordinator"].recompute(RecomputeRequest(resource.id, sept(1), sept(3)))

    assert result.state == RecomputationState.DONE
    assert result.attempts == 1
    assert result.days_evaluated == 3
    assert result.history == [
        RecomputationState.QUEUED,
        RecomputationState.LOCKED,
        RecomputationState.AGGREGATING,
        RecomputationState.CLASSIFYING,
        RecomputationState.RECONCILING,
        RecomputationState.DONE,
    ]


def test_run_state_machine_rejects_illegal_moves():
    run = RecomputationRun(RecomputeRequest("r-1", date(2025, 9, 1), date(2025, 9, 1)))

    with pytest.raises(BusinessRuleError):
        run.advance(RecomputationState.DONE)

    run.advance(RecomputationState.LOCKED)
    run.fail(RuntimeError("boom"))
    assert run.state == RecomputationState.FAILED
    assert run.finished
    with pytest.raises(BusinessRuleError):
        run.advance(RecomputationState.AGGREGATING)


def test_events_are_published_after_commit(services, resource, events):
    created, resolved = [], []
    events.conflict_created.connect(created.append)
    events.conflict_resolved.connect(resolved.append)
    svc = services["allocation_service"]

    svc.record_allocation(resource.id, "p-1", date(2025, 9, 10), date(2025, 9, 10), 60, allocation_type="HARD")
    second = svc.record_allocation(
        resource.id, "p-2", date(2025, 9, 10), date(2025, 9, 10), 60, allocation_type="HARD"
    )
    svc.delete_allocation(second.id)

    assert len(created) == 1
    assert created[0].state == "created"
    assert created[0].severity == "LOW"
    assert len(resolved) == 1
    assert resolved[0].conflict_id == created[0].conflict_id
    assert resolved[0].event_key != created[0].event_key


def test_failing_subscriber_does_not_undo_committed_conflicts(services, resource, events):
    def explode(_event):
        raise RuntimeError("subscriber down")

    events.conflict_created.connect(explode)
    svc = services["allocation_service"]
    svc.record_allocation(resource.id, "p-1", date(2025, 9, 10), date(2025, 9, 10), 60, allocation_type="HARD")
    svc.record_allocation(resource.id, "p-2", date(2025, 9, 10), date(2025, 9, 10), 60, allocation_type="HARD")

    assert len(services["conflict_service"].list_conflicts(resource.id, resolved=False)) == 1


def test_storage_failure_rolls_back_and_reports_retryable_error(
    session, session_factory, settings_provider, events, resource
):
    _seed_overlap(session, resource)
    failures = []
    events.recomputation_failed.connect(failures.append)
    FlakyConflictRepository.failures_left = 5
    coordinator = _coordinator(
        session_factory, settings_provider, events, repositories_factory=_flaky_repositories, max_attempts=2
    )

    with pytest.raises(RecomputationError) as exc:
        coordinator.recompute(RecomputeRequest(resource.id, date(2025, 9, 1), date(2025, 9, 30)))

    FlakyConflictRepository.failures_left = 0
    assert exc.value.retryable is True
    assert exc.value.request.resource_id == resource.id
    assert SqlAlchemyConflictRepository(session).list_for_resource(resource.id) == []
    assert len(failures) == 1
    assert failures[0].attempts == 2
    assert failures[0].error_code == "RECOMPUTATION_FAILED"


def test_transient_failure_is_retried(session, session_factory, settings_provider, events, resource):
    _seed_overlap(session, resource)
    FlakyConflictRepository.failures_left = 1
    coordinator = _coordinator(
        session_factory, settings_provider, events, repositories_factory=_flaky_repositories
    )

    result = coordinator.recompute(RecomputeRequest(resource.id, date(2025, 9, 1), date(2025, 9, 30)))

    FlakyConflictRepository.failures_left = 0
    assert result.attempts == 2
    assert result.created == 1
    assert len(SqlAlchemyConflictRepository(session).list_for_resource(resource.id)) == 1


def test_lock_timeout_is_surfaced_with_the_request(session_factory, settings_provider, events, resource):
    locks = InProcessResourceLocks(ttl_seconds=30)
    coordinator = _coordinator(session_factory, settings_provider, events, locks=locks, lock_timeout_seconds=0.1)
    failures = []
    events.recomputation_failed.connect(failures.append)
    request = RecomputeRequest(resource.id, date(2025, 9, 1), date(2025, 9, 2))

    with locks.held(resource.id, 1.0):
        with pytest.raises(LockTimeoutError) as exc:
            coordinator.recompute(request)

    assert exc.value.retryable is True
    assert exc.value.request is request
    assert failures[0].error_code == "LOCK_TIMEOUT"
    assert locks.waiting(resource.id) == 0
    assert coordinator.recompute(request).state == RecomputationState.DONE


def test_allocation_write_survives_recompute_timeout(build_services, resource):
    locks = InProcessResourceLocks(ttl_seconds=30)
    services = build_services(
        locks=locks,
        recompute_policy=RecomputePolicy(lock_timeout_seconds=0.1, backoff_seconds=0.0),
    )

    with locks.held(resource.id, 1.0):
        with pytest.raises(LockTimeoutError):
            services["allocation_service"].record_allocation(
                resource.id, "p-1", date(2025, 9, 1), date(2025, 9, 1), 50
            )

    assert len(services["allocation_service"].list_allocations_for_resource(resource.id)) == 1


def test_expired_lease_cannot_commit_and_is_retried(
    session, session_factory, settings_provider, events, resource
):
    _seed_overlap(session, resource)
    calls = {"n": 0}

    class SlowConflictRepository(SqlAlchemyConflictRepository):
        def unresolved_by_date(self, *args):
            calls["n"] += 1
            if calls["n"] == 1:
                time.sleep(0.5)
            return super().unresolved_by_date(*args)

    def slow_repositories(s):
        repos = build_recompute_repositories(s)
        return type(repos)(
            allocations=repos.allocations,
            conflicts=SlowConflictRepository(s),
            capacity=repos.capacity,
            resources=repos.resources,
            org_settings=repos.org_settings,
        )

    coordinator = _coordinator(
        session_factory,
        settings_provider,
        events,
        repositories_factory=slow_repositories,
        lock_ttl_seconds=0.3,
    )

    result = coordinator.recompute(RecomputeRequest(resource.id, date(2025, 9, 10), date(2025, 9, 10)))

    assert result.attempts == 2
    assert len(SqlAlchemyConflictRepository(session).list_for_resource(resource.id, resolved=False)) == 1


def test_submitted_requests_complete_on_an_executor(session, session_factory, settings_provider, events, resource):
    _seed_overlap(session, resource)
    with ThreadPoolExecutor(max_workers=4) as executor:
        coordinator = RecomputationCoordinator(
            session_factory,
            build_recompute_repositories,
            InProcessResourceLocks(ttl_seconds=30),
            settings_provider,
            policy=RecomputePolicy(lock_timeout_seconds=5.0, backoff_seconds=0.0),
            events=events,
            executor=executor,
        )
        futures = [
            coordinator.submit(RecomputeRequest(resource.id, date(2025, 9, 1), date(2025, 9, 30)))
            for _ in range(5)
        ]
        results = [future.result(timeout=30) for future in futures]

    assert all(r.state == RecomputationState.DONE for r in results)
    assert sum(r.created for r in results) == 1
    assert len(SqlAlchemyConflictRepository(session).list_for_resource(resource.id, resolved=False)) == 1


def test_sweep_covers_every_booked_resource(session, services, resource, make_resource):
    other = make_resource("Dev B")
    _seed_overlap(session, resource)
    _seed_overlap(session, other, day=date(2025, 9, 20))

    results = services["recomputation_coordinator"].recompute_all(date(2025, 9, 1), date(2025, 9, 30))

    assert set(results) == {resource.id, other.id}
    assert all(r.created == 1 for r in results.values())
    assert len(services["conflict_service"].list_open_conflicts()) == 2


def test_sweep_resolves_orphaned_conflicts(session, services, resource):
    _seed_overlap(session, resource)
    coordinator = services["recomputation_coordinator"]
    coordinator.recompute_all(date(2025, 9, 1), date(2025, 9, 30))
    for allocation in SqlAlchemyAllocationRepository(session).list_by_resource(resource.id):
        SqlAlchemyAllocationRepository(session).delete(allocation.id)
    session.commit()

    results = coordinator.recompute_all(date(2025, 9, 1), date(2025, 9, 30))

    assert results[resource.id].resolved == 1
    assert services["conflict_service"].list_open_conflicts() == []


def test_resolve_waits_for_the_resource_lock(session_factory, settings_provider, events, session, resource):
    _seed_overlap(session, resource)
    locks = InProcessResourceLocks(ttl_seconds=30)
    coordinator = _coordinator(session_factory, settings_provider, events, locks=locks, lock_timeout_seconds=0.1)
    coordinator.recompute(RecomputeRequest(resource.id, date(2025, 9, 10), date(2025, 9, 10)))
    conflict = SqlAlchemyConflictRepository(session).list_for_resource(resource.id)[0]

    with locks.held(resource.id, 1.0):
        with pytest.raises(LockTimeoutError):
            coordinator.resolve_conflict(conflict.id, "lead-1")

    assert coordinator.resolve_conflict(conflict.id, "lead-1").resolved is True


def test_inverted_request_span_is_rejected(services, resource):
    with pytest.raises(InvalidDateRange):
        services["recomputation_coordinator"].recompute(
            RecomputeRequest(resource.id, date(2025, 9, 2), date(2025, 9, 1))
        )
