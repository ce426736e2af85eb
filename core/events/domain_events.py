"""Events published by the capacity engine after its transactions commit."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from core.events.signal import Signal


@dataclass(frozen=True)
class AllocationChanged:
    allocation_id: str
    resource_id: str
    project_id: str
    action: str  # created | updated | deleted
    range_start: date
    range_end: date


@dataclass(frozen=True)
class ConflictEvent:
    conflict_id: str
    resource_id: str
    conflict_date: date
    state: str  # created | updated | reopened | resolved
    severity: str
    total_allocation: float
    resolved_by_user_id: Optional[str] = None

    @property
    def event_key(self) -> str:
        # consumers dedupe on this; delivery is at-least-once
        return f"{self.conflict_id}:{self.state}:{self.severity}:{self.total_allocation:.4f}"


@dataclass(frozen=True)
class RecomputationFailed:
    resource_id: str
    range_start: date
    range_end: date
    error_code: str
    message: str
    attempts: int
    retryable: bool


class CapacityEvents:
    def __init__(self) -> None:
        self.allocation_changed: Signal[AllocationChanged] = Signal("allocation_changed")
        self.conflict_created: Signal[ConflictEvent] = Signal("conflict_created")
        self.conflict_updated: Signal[ConflictEvent] = Signal("conflict_updated")
        self.conflict_resolved: Signal[ConflictEvent] = Signal("conflict_resolved")
        self.recomputation_failed: Signal[RecomputationFailed] = Signal("recomputation_failed")

    def publish_conflict(self, event: ConflictEvent) -> None:
        if event.state == "resolved":
            self.conflict_resolved.emit(event)
        elif event.state in ("created", "reopened"):
            self.conflict_created.emit(event)
        else:
            self.conflict_updated.emit(event)


# SINGLE global instance
capacity_events = CapacityEvents()


__all__ = [
    "AllocationChanged",
    "ConflictEvent",
    "RecomputationFailed",
    "CapacityEvents",
    "capacity_events",
]
