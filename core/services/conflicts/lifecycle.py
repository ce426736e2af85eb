from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional

from core.exceptions import AlreadyResolved, NotFoundError, ValidationError
from core.interfaces import ConflictRepository
from core.models import AffectedAllocation, ResourceConflict
from core.services.conflicts.aggregator import DailyLoad
from core.services.conflicts.classifier import Classification

logger = logging.getLogger(__name__)

AUTO_RESOLVED_NOTE = "auto-resolved: load reduced below capacity"
_EPS = 1e-9


class RecurrenceAction(str, Enum):
    CREATE = "CREATE"
    REOPEN = "REOPEN"
    SUPPRESS = "SUPPRESS"


def is_acknowledged(
    previous: ResourceConflict,
    total: float,
    affected: list[AffectedAllocation],
) -> bool:
    """
    True when a manual resolution already covers this overage: every counted
    allocation was in front of the resolver and the load has not grown.
    """
    if previous.auto_resolved:
        return False
    counted = {a.allocation_id for a in affected if a.counted_percentage > 0}
    return counted <= previous.counted_allocation_ids and total <= previous.total_allocation + _EPS


class RecurrencePolicy(ABC):
    """Decides what happens when an overage appears on a day with no unresolved row."""

    name: str = "abstract"

    @abstractmethod
    def decide(
        self,
        previous: Optional[ResourceConflict],
        total: float,
        affected: list[AffectedAllocation],
    ) -> RecurrenceAction: ...


class PreserveHistoryRecurrencePolicy(RecurrencePolicy):
    """Resolved rows are never touched again; recurrences get a fresh row."""

    name = "new_row"

    def decide(self, previous, total, affected) -> RecurrenceAction:
        if previous is None or previous.auto_resolved:
            return RecurrenceAction.CREATE
        if is_acknowledged(previous, total, affected):
            return RecurrenceAction.SUPPRESS
        return RecurrenceAction.CREATE


class ReopenAutoResolvedRecurrencePolicy(RecurrencePolicy):
    """Auto-resolved rows are reopened in place; manual resolutions keep their row."""

    name = "reopen"

    def decide(self, previous, total, affected) -> RecurrenceAction:
        if previous is None:
            return RecurrenceAction.CREATE
        if previous.auto_resolved:
            return RecurrenceAction.REOPEN
        if is_acknowledged(previous, total, affected):
            return RecurrenceAction.SUPPRESS
        return RecurrenceAction.CREATE


_RECURRENCE_POLICIES: dict[str, type[RecurrencePolicy]] = {
    PreserveHistoryRecurrencePolicy.name: PreserveHistoryRecurrencePolicy,
    ReopenAutoResolvedRecurrencePolicy.name: ReopenAutoResolvedRecurrencePolicy,
}


def build_recurrence_policy(name: str | None = None) -> RecurrencePolicy:
    mode = (name if name is not None else os.getenv("CE_CONFLICT_RECURRENCE", "new_row"))
    mode = (mode or "new_row").strip().lower()
    policy_type = _RECURRENCE_POLICIES.get(mode)
    if policy_type is None:
        raise ValidationError(
            f"Unknown conflict recurrence mode {mode!r}.",
            code="CAPACITY_INVALID_SETTING",
        )
    return policy_type()


@dataclass(frozen=True)
class DayDecision:
    day: date
    load: DailyLoad
    capacity: float
    classification: Optional[Classification]


@dataclass(frozen=True)
class ConflictChange:
    conflict: ResourceConflict
    state: str  # created | updated | reopened | resolved


@dataclass
class ReconcileOutcome:
    changes: list[ConflictChange] = field(default_factory=list)
    days_evaluated: int = 0
    conflicting_days: int = 0
    suppressed_days: int = 0

    def count(self, state: str) -> int:
        return sum(1 for change in self.changes if change.state == state)


def affected_from_load(load: DailyLoad) -> list[AffectedAllocation]:
    return [
        AffectedAllocation(
            allocation_id=c.allocation_id,
            project_id=c.project_id,
            task_id=c.task_id,
            allocation_type=c.allocation_type,
            allocation_percentage=c.allocation_percentage,
            counted_percentage=c.counted_percentage,
        )
        for c in load.contributors
    ]


def _changed(
    conflict: ResourceConflict,
    total: float,
    capacity: float,
    classification: Classification,
    affected: list[AffectedAllocation],
) -> bool:
    return (
        abs(conflict.total_allocation - total) > _EPS
        or abs(conflict.capacity_percent - capacity) > _EPS
        or conflict.severity != classification.severity
        or conflict.affected_projects != affected
    )


class ConflictLifecycleManager:
    def __init__(self, recurrence_policy: RecurrencePolicy | None = None):
        self._recurrence = recurrence_policy or PreserveHistoryRecurrencePolicy()

    @property
    def recurrence_policy(self) -> RecurrencePolicy:
        return self._recurrence

    def reconcile(
        self,
        conflict_repo: ConflictRepository,
        resource_id: str,
        range_start: date,
        range_end: date,
        decisions: list[DayDecision],
        now: datetime,
    ) -> ReconcileOutcome:
        """
        Bring stored conflict rows for one resource and span in line with the
        day decisions. Caller holds the resource lock and owns the transaction.
        """
        unresolved = conflict_repo.unresolved_by_date(resource_id, range_start, range_end)
        latest_resolved = conflict_repo.latest_resolved_by_date(resource_id, range_start, range_end)
        outcome = ReconcileOutcome()

        for decision in decisions:
            outcome.days_evaluated += 1
            existing = unresolved.get(decision.day)
            if decision.classification is None:
                if existing is not None:
                    self._auto_resolve(conflict_repo, existing, now)
                    outcome.changes.append(ConflictChange(existing, "resolved"))
                continue

            outcome.conflicting_days += 1
            total = decision.load.total
            affected = affected_from_load(decision.load)
            if existing is not None:
                if _changed(existing, total, decision.capacity, decision.classification, affected):
                    self._apply(existing, decision, decision.classification, affected, now)
                    conflict_repo.update(existing)
                    outcome.changes.append(ConflictChange(existing, "updated"))
                continue

            previous = latest_resolved.get(decision.day)
            action = self._recurrence.decide(previous, total, affected)
            if action == RecurrenceAction.SUPPRESS:
                outcome.suppressed_days += 1
                continue
            if action == RecurrenceAction.REOPEN and previous is not None:
                previous.resolved = False
                previous.resolved_at = None
                previous.resolved_by_user_id = None
                previous.resolution_note = None
                self._apply(previous, decision, decision.classification, affected, now)
                conflict_repo.update(previous)
                outcome.changes.append(ConflictChange(previous, "reopened"))
                continue

            conflict = ResourceConflict.create(
                resource_id=resource_id,
                conflict_date=decision.day,
                total_allocation=total,
                severity=decision.classification.severity,
                capacity_percent=decision.capacity,
                affected_projects=affected,
                detected_at=now,
            )
            conflict_repo.add(conflict)
            outcome.changes.append(ConflictChange(conflict, "created"))

        if outcome.changes:
            logger.info(
                "Reconciled conflicts for resource %s %s..%s: created=%s updated=%s reopened=%s resolved=%s",
                resource_id,
                range_start,
                range_end,
                outcome.count("created"),
                outcome.count("updated"),
                outcome.count("reopened"),
                outcome.count("resolved"),
            )
        return outcome

    def resolve(
        self,
        conflict_repo: ConflictRepository,
        conflict_id: str,
        user_id: str,
        note: str | None,
        now: datetime,
    ) -> ResourceConflict:
        if not (user_id or "").strip():
            raise ValidationError("A resolving user is required.", code="CONFLICT_RESOLVER_REQUIRED")
        conflict = conflict_repo.get(conflict_id)
        if conflict is None:
            raise NotFoundError("Conflict not found.", code="CONFLICT_NOT_FOUND")
        if conflict.resolved:
            raise AlreadyResolved("Conflict is already resolved.", code="CONFLICT_ALREADY_RESOLVED")
        conflict.resolved = True
        conflict.resolved_at = now
        conflict.resolved_by_user_id = user_id.strip()
        conflict.resolution_note = (note or "").strip() or None
        conflict.updated_at = now
        conflict_repo.update(conflict)
        return conflict

    @staticmethod
    def _auto_resolve(conflict_repo: ConflictRepository, conflict: ResourceConflict, now: datetime) -> None:
        conflict.resolved = True
        conflict.resolved_at = now
        conflict.resolved_by_user_id = None
        conflict.resolution_note = AUTO_RESOLVED_NOTE
        conflict.updated_at = now
        conflict_repo.update(conflict)

    @staticmethod
    def _apply(
        conflict: ResourceConflict,
        decision: DayDecision,
        classification: Classification,
        affected: list[AffectedAllocation],
        now: datetime,
    ) -> None:
        conflict.total_allocation = decision.load.total
        conflict.capacity_percent = decision.capacity
        conflict.severity = classification.severity
        conflict.affected_projects = affected
        conflict.updated_at = now


__all__ = [
    "AUTO_RESOLVED_NOTE",
    "RecurrenceAction",
    "RecurrencePolicy",
    "PreserveHistoryRecurrencePolicy",
    "ReopenAutoResolvedRecurrencePolicy",
    "build_recurrence_policy",
    "is_acknowledged",
    "DayDecision",
    "ConflictChange",
    "ReconcileOutcome",
    "ConflictLifecycleManager",
    "affected_from_load",
]
