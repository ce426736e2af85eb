from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Optional

from core.domain.enums import AllocationType, ConflictSeverity
from core.domain.identifiers import generate_id


@dataclass(frozen=True)
class AffectedAllocation:
    allocation_id: str
    project_id: str
    task_id: Optional[str]
    allocation_type: AllocationType
    allocation_percentage: float
    counted_percentage: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "allocation_id": self.allocation_id,
            "project_id": self.project_id,
            "task_id": self.task_id,
            "allocation_type": self.allocation_type.value,
            "allocation_percentage": self.allocation_percentage,
            "counted_percentage": self.counted_percentage,
        }

    @staticmethod
    def from_dict(payload: dict[str, Any]) -> "AffectedAllocation":
        return AffectedAllocation(
            allocation_id=str(payload.get("allocation_id") or ""),
            project_id=str(payload.get("project_id") or ""),
            task_id=payload.get("task_id"),
            allocation_type=AllocationType(payload.get("allocation_type") or AllocationType.SOFT.value),
            allocation_percentage=float(payload.get("allocation_percentage") or 0.0),
            counted_percentage=float(payload.get("counted_percentage") or 0.0),
        )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ResourceConflict:
    id: str
    resource_id: str
    conflict_date: date
    total_allocation: float
    severity: ConflictSeverity
    capacity_percent: float = 100.0
    affected_projects: list[AffectedAllocation] = field(default_factory=list)
    resolved: bool = False
    detected_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)
    resolved_at: Optional[datetime] = None
    resolved_by_user_id: Optional[str] = None
    resolution_note: Optional[str] = None

    @staticmethod
    def create(
        resource_id: str,
        conflict_date: date,
        total_allocation: float,
        severity: ConflictSeverity,
        capacity_percent: float,
        affected_projects: list[AffectedAllocation],
        detected_at: datetime | None = None,
    ) -> "ResourceConflict":
        now = detected_at or _utc_now()
        return ResourceConflict(
            id=generate_id(),
            resource_id=resource_id,
            conflict_date=conflict_date,
            total_allocation=total_allocation,
            severity=severity,
            capacity_percent=capacity_percent,
            affected_projects=list(affected_projects),
            detected_at=now,
            updated_at=now,
        )

    @property
    def auto_resolved(self) -> bool:
        return self.resolved and self.resolved_by_user_id is None

    @property
    def counted_allocation_ids(self) -> frozenset[str]:
        return frozenset(
            a.allocation_id for a in self.affected_projects if a.counted_percentage > 0
        )


__all__ = ["AffectedAllocation", "ResourceConflict"]
