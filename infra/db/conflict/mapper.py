from __future__ import annotations

import json
from typing import Any

from core.models import AffectedAllocation, ResourceConflict
from infra.db.models import ResourceConflictORM
from infra.db.timestamps import as_utc


def _to_json(affected: list[AffectedAllocation]) -> str:
    return json.dumps([a.to_dict() for a in affected], default=str, ensure_ascii=False)


def _from_json(raw: str | None) -> list[AffectedAllocation]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        return []
    if not isinstance(value, list):
        return []
    return [AffectedAllocation.from_dict(item) for item in value if isinstance(item, dict)]


def conflict_values(conflict: ResourceConflict) -> dict[str, Any]:
    return {
        "total_allocation": conflict.total_allocation,
        "capacity_percent": conflict.capacity_percent,
        "affected_projects_json": _to_json(conflict.affected_projects),
        "severity": conflict.severity,
        "severity_rank": conflict.severity.rank,
        "resolved": conflict.resolved,
        "updated_at": conflict.updated_at,
        "resolved_at": conflict.resolved_at,
        "resolved_by_user_id": conflict.resolved_by_user_id,
        "resolution_note": conflict.resolution_note,
    }


def conflict_to_orm(conflict: ResourceConflict) -> ResourceConflictORM:
    return ResourceConflictORM(
        id=conflict.id,
        resource_id=conflict.resource_id,
        conflict_date=conflict.conflict_date,
        detected_at=conflict.detected_at,
        **conflict_values(conflict),
    )


def conflict_from_orm(obj: ResourceConflictORM) -> ResourceConflict:
    return ResourceConflict(
        id=obj.id,
        resource_id=obj.resource_id,
        conflict_date=obj.conflict_date,
        total_allocation=float(obj.total_allocation),
        severity=obj.severity,
        capacity_percent=float(obj.capacity_percent),
        affected_projects=_from_json(obj.affected_projects_json),
        resolved=bool(obj.resolved),
        detected_at=as_utc(obj.detected_at),
        updated_at=as_utc(obj.updated_at),
        resolved_at=as_utc(obj.resolved_at),
        resolved_by_user_id=obj.resolved_by_user_id,
        resolution_note=obj.resolution_note,
    )


__all__ = ["conflict_to_orm", "conflict_from_orm", "conflict_values"]
