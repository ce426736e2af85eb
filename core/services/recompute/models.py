from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from core.events.domain_events import ConflictEvent
from core.exceptions import BusinessRuleError
from core.interfaces import (
    AllocationRepository,
    CapacityCalendarRepository,
    ConflictRepository,
    OrganizationSettingsRepository,
    ResourceDirectory,
)
from core.models import RecomputationState, generate_id


@dataclass(frozen=True)
class RecomputeRequest:
    resource_id: str
    range_start: date
    range_end: date
    reason: str = "manual"
    request_id: str = field(default_factory=generate_id)


@dataclass(frozen=True)
class RecomputeRepositories:
    """Repositories bound to the coordinator's own session."""

    allocations: AllocationRepository
    conflicts: ConflictRepository
    capacity: CapacityCalendarRepository
    resources: ResourceDirectory
    org_settings: Optional[OrganizationSettingsRepository] = None


_TRANSITIONS: dict[RecomputationState, frozenset[RecomputationState]] = {
    RecomputationState.QUEUED: frozenset({RecomputationState.LOCKED}),
    RecomputationState.LOCKED: frozenset({RecomputationState.AGGREGATING}),
    RecomputationState.AGGREGATING: frozenset({RecomputationState.CLASSIFYING}),
    RecomputationState.CLASSIFYING: frozenset({RecomputationState.RECONCILING}),
    RecomputationState.RECONCILING: frozenset({RecomputationState.DONE}),
    RecomputationState.DONE: frozenset(),
    RecomputationState.FAILED: frozenset(),
}
_TERMINAL = frozenset({RecomputationState.DONE, RecomputationState.FAILED})


class RecomputationRun:
    """One attempt at a request; FAILED is reachable from any non-terminal state."""

    def __init__(self, request: RecomputeRequest, attempt: int = 1):
        self.request = request
        self.attempt = attempt
        self.state = RecomputationState.QUEUED
        self.history: list[RecomputationState] = [RecomputationState.QUEUED]
        self.error: Optional[BaseException] = None

    @property
    def finished(self) -> bool:
        return self.state in _TERMINAL

    def advance(self, state: RecomputationState) -> None:
        allowed = _TRANSITIONS[self.state]
        if not self.finished:
            allowed = allowed | {RecomputationState.FAILED}
        if state not in allowed:
            raise BusinessRuleError(
                f"Illegal recomputation transition {self.state.value} -> {state.value}.",
                code="RECOMPUTATION_ILLEGAL_TRANSITION",
            )
        self.state = state
        self.history.append(state)

    def fail(self, error: BaseException) -> None:
        self.error = error
        if not self.finished:
            self.advance(RecomputationState.FAILED)


@dataclass
class RecomputeResult:
    request: RecomputeRequest
    state: RecomputationState
    attempts: int
    days_evaluated: int = 0
    conflicting_days: int = 0
    suppressed_days: int = 0
    created: int = 0
    updated: int = 0
    reopened: int = 0
    resolved: int = 0
    events: list[ConflictEvent] = field(default_factory=list)
    history: list[RecomputationState] = field(default_factory=list)


__all__ = [
    "RecomputeRequest",
    "RecomputeRepositories",
    "RecomputationRun",
    "RecomputeResult",
]
