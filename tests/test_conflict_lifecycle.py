from datetime import date

import pytest

from core.exceptions import AlreadyResolved, NotFoundError, ValidationError
from core.models import AllocationType, CapacityCalendarEntry, ConflictSeverity
from core.services.conflicts import AUTO_RESOLVED_NOTE, ReopenAutoResolvedRecurrencePolicy
from core.services.recompute import RecomputeRequest


def _hard(services, resource, project_id, start, end, pct):
    return services["allocation_service"].record_allocation(
        resource.id, project_id, start, end, pct, allocation_type=AllocationType.HARD
    )


def _open(services, resource):
    return services["conflict_service"].list_conflicts(resource.id, resolved=False)


@pytest.fixture
def overbooked(services, resource, sept):
    """Two 60% hard bookings that overlap on September 10 only."""
    first = _hard(services, resource, "p-1", sept(8), sept(10), 60)
    second = _hard(services, resource, "p-2", sept(10), sept(12), 60)
    return first, second


def test_overlap_produces_one_conflict_for_the_shared_day(services, resource, overbooked, sept):
    conflicts = _open(services, resource)

    assert len(conflicts) == 1
    conflict = conflicts[0]
    assert conflict.conflict_date == sept(10)
    assert conflict.total_allocation == pytest.approx(120)
    assert conflict.severity == ConflictSeverity.LOW
    assert conflict.capacity_percent == pytest.approx(100)
    assert {a.project_id for a in conflict.affected_projects} == {"p-1", "p-2"}
    assert conflict.resolved is False


def test_recomputing_unchanged_data_changes_nothing(services, resource, overbooked, sept):
    before = _open(services, resource)
    coordinator = services["recomputation_coordinator"]

    result = coordinator.recompute(RecomputeRequest(resource.id, sept(1), sept(30)))
    again = coordinator.recompute(RecomputeRequest(resource.id, sept(1), sept(30)))

    assert result.created == result.updated == result.resolved == 0
    assert again.created == again.updated == again.resolved == 0
    after = _open(services, resource)
    assert [(c.id, c.total_allocation, c.updated_at) for c in after] == [
        (c.id, c.total_allocation, c.updated_at) for c in before
    ]


def test_deleting_an_allocation_auto_resolves(services, resource, overbooked):
    _, second = overbooked
    conflict_id = _open(services, resource)[0].id

    services["allocation_service"].delete_allocation(second.id)

    assert _open(services, resource) == []
    resolved = services["conflict_service"].get_conflict(conflict_id)
    assert resolved.resolved is True
    assert resolved.resolved_by_user_id is None
    assert resolved.resolution_note == AUTO_RESOLVED_NOTE
    assert resolved.resolved_at is not None


def test_growing_overage_updates_the_same_row(services, resource, overbooked):
    _, second = overbooked
    original = _open(services, resource)[0]

    services["allocation_service"].update_allocation(second.id, allocation_percentage=80)

    conflicts = _open(services, resource)
    assert len(conflicts) == 1
    assert conflicts[0].id == original.id
    assert conflicts[0].total_allocation == pytest.approx(140)
    assert conflicts[0].severity == ConflictSeverity.MEDIUM
    assert conflicts[0].detected_at == original.detected_at


def test_moving_an_allocation_reassesses_the_vacated_days(services, resource, sept):
    _hard(services, resource, "p-1", sept(1), sept(5), 60)
    moving = _hard(services, resource, "p-2", sept(3), sept(3), 60)
    assert [c.conflict_date for c in _open(services, resource)] == [sept(3)]

    services["allocation_service"].update_allocation(moving.id, start_date=sept(20), end_date=sept(20))

    assert _open(services, resource) == []
    history = services["conflict_service"].list_conflicts(resource.id, resolved=True)
    assert [c.conflict_date for c in history] == [sept(3)]


def test_manual_resolution_is_sticky_while_the_load_is_unchanged(services, resource, overbooked, sept):
    conflict = _open(services, resource)[0]

    resolved = services["conflict_service"].resolve_conflict(conflict.id, "lead-1", "Approved overtime")
    services["recomputation_coordinator"].recompute(RecomputeRequest(resource.id, sept(1), sept(30)))

    assert resolved.resolved_by_user_id == "lead-1"
    assert _open(services, resource) == []
    stored = services["conflict_service"].get_conflict(conflict.id)
    assert stored.resolved is True
    assert stored.resolution_note == "Approved overtime"
    assert stored.resolved_by_user_id == "lead-1"


def test_new_booking_after_manual_resolution_raises_a_new_conflict(services, resource, overbooked, sept):
    acknowledged = _open(services, resource)[0]
    services["conflict_service"].resolve_conflict(acknowledged.id, "lead-1")

    _hard(services, resource, "p-3", sept(10), sept(10), 10)

    conflicts = _open(services, resource)
    assert len(conflicts) == 1
    assert conflicts[0].id != acknowledged.id
    assert conflicts[0].total_allocation == pytest.approx(130)
    assert services["conflict_service"].get_conflict(acknowledged.id).resolved is True


def test_recurrence_after_auto_resolution_keeps_history(services, resource, overbooked, sept):
    _, second = overbooked
    first_id = _open(services, resource)[0].id
    services["allocation_service"].delete_allocation(second.id)

    _hard(services, resource, "p-2", sept(10), sept(10), 60)

    rows = services["conflict_service"].list_conflicts(resource.id)
    assert len(rows) == 2
    assert [r.id for r in rows if r.resolved] == [first_id]
    assert [r.id for r in rows if not r.resolved] != [first_id]


def test_reopen_policy_reuses_auto_resolved_row(build_services, resource, sept):
    services = build_services(recurrence_policy=ReopenAutoResolvedRecurrencePolicy())
    _hard(services, resource, "p-1", sept(10), sept(10), 60)
    second = _hard(services, resource, "p-2", sept(10), sept(10), 60)
    original_id = _open(services, resource)[0].id
    services["allocation_service"].delete_allocation(second.id)

    _hard(services, resource, "p-2", sept(10), sept(10), 70)

    rows = services["conflict_service"].list_conflicts(resource.id)
    assert len(rows) == 1
    assert rows[0].id == original_id
    assert rows[0].resolved is False
    assert rows[0].resolved_at is None
    assert rows[0].resolution_note is None
    assert rows[0].total_allocation == pytest.approx(130)


def test_resolving_twice_is_rejected(services, resource, overbooked):
    conflict = _open(services, resource)[0]
    services["conflict_service"].resolve_conflict(conflict.id, "lead-1")

    with pytest.raises(AlreadyResolved) as exc:
        services["conflict_service"].resolve_conflict(conflict.id, "lead-2")

    assert exc.value.code == "CONFLICT_ALREADY_RESOLVED"
    assert services["conflict_service"].get_conflict(conflict.id).resolved_by_user_id == "lead-1"


def test_resolving_auto_resolved_conflict_is_rejected(services, resource, overbooked):
    _, second = overbooked
    conflict_id = _open(services, resource)[0].id
    services["allocation_service"].delete_allocation(second.id)

    with pytest.raises(AlreadyResolved):
        services["conflict_service"].resolve_conflict(conflict_id, "lead-1")


def test_resolve_requires_user_and_existing_conflict(services, resource, overbooked):
    conflict = _open(services, resource)[0]

    with pytest.raises(ValidationError):
        services["conflict_service"].resolve_conflict(conflict.id, "  ")
    with pytest.raises(NotFoundError):
        services["conflict_service"].resolve_conflict("missing", "lead-1")
    assert _open(services, resource)[0].resolved is False


def test_ghost_bookings_never_raise_conflicts(services, resource, sept):
    _hard(services, resource, "p-1", sept(1), sept(5), 80)
    services["allocation_service"].record_allocation(
        resource.id, "p-2", sept(1), sept(5), 60, allocation_type=AllocationType.GHOST
    )

    assert services["conflict_service"].list_conflicts(resource.id) == []


def test_zero_capacity_day_is_critical(services, resource, sept):
    services["capacity_repo"].upsert(
        CapacityCalendarEntry.create(resource.id, sept(6), 0, workspace_id="ws-1")
    )
    services["session"].commit()

    services["allocation_service"].record_allocation(resource.id, "p-1", sept(5), sept(8), 50)

    conflicts = _open(services, resource)
    assert [c.conflict_date for c in conflicts] == [sept(6)]
    assert conflicts[0].severity == ConflictSeverity.CRITICAL
    assert conflicts[0].capacity_percent == 0


def test_half_day_capacity_lowers_the_threshold(services, resource, sept):
    services["capacity_repo"].upsert(
        CapacityCalendarEntry.create(resource.id, sept(2), 4, workspace_id="ws-1")
    )
    services["session"].commit()

    services["allocation_service"].record_allocation(resource.id, "p-1", sept(1), sept(3), 60)

    conflicts = _open(services, resource)
    assert [c.conflict_date for c in conflicts] == [sept(2)]
    assert conflicts[0].capacity_percent == pytest.approx(50)
    assert conflicts[0].severity == ConflictSeverity.LOW


def test_list_conflicts_filters(services, resource, sept):
    _hard(services, resource, "p-1", sept(1), sept(10), 70)
    _hard(services, resource, "p-2", sept(2), sept(2), 40)
    _hard(services, resource, "p-3", sept(9), sept(9), 40)
    conflict_service = services["conflict_service"]

    assert len(conflict_service.list_conflicts(resource.id)) == 2
    in_range = conflict_service.list_conflicts(resource.id, date_range=(sept(5), sept(30)))
    assert [c.conflict_date for c in in_range] == [sept(9)]
    assert conflict_service.list_conflicts(resource.id, resolved=True) == []


def test_list_open_conflicts_orders_by_severity_then_date(services, resource, make_resource, sept):
    other = make_resource("Dev B")
    _hard(services, resource, "p-1", sept(12), sept(12), 60)
    _hard(services, resource, "p-2", sept(12), sept(12), 60)
    _hard(services, other, "p-1", sept(15), sept(15), 100)
    _hard(services, other, "p-2", sept(15), sept(15), 100)
    _hard(services, other, "p-3", sept(11), sept(11), 100)
    _hard(services, other, "p-4", sept(11), sept(11), 30)

    open_conflicts = services["conflict_service"].list_open_conflicts()

    assert [(c.severity, c.conflict_date) for c in open_conflicts] == [
        (ConflictSeverity.HIGH, sept(15)),
        (ConflictSeverity.MEDIUM, sept(11)),
        (ConflictSeverity.LOW, sept(12)),
    ]
    high_only = services["conflict_service"].list_open_conflicts(min_severity=ConflictSeverity.HIGH)
    assert [c.resource_id for c in high_only] == [other.id]
    assert services["conflict_service"].list_open_conflicts(from_date=sept(13))[0].conflict_date == sept(15)
