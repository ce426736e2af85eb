from __future__ import annotations

from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError, ValidationError
from core.interfaces import ConflictRepository
from core.models import ConflictSeverity, ResourceConflict
from core.services.conflicts.aggregator import validate_range
from core.services.recompute.coordinator import RecomputationCoordinator


class ConflictService:
    """Read side of the conflict lifecycle plus the manual resolve entry point."""

    def __init__(
        self,
        session: Session,
        conflict_repo: ConflictRepository,
        coordinator: RecomputationCoordinator,
    ):
        self._session = session
        self._conflict_repo = conflict_repo
        self._coordinator = coordinator

    def get_conflict(self, conflict_id: str) -> ResourceConflict:
        conflict = self._conflict_repo.get(conflict_id)
        if conflict is None:
            raise NotFoundError("Conflict not found.", code="CONFLICT_NOT_FOUND")
        return conflict

    def list_conflicts(
        self,
        resource_id: str,
        *,
        resolved: Optional[bool] = None,
        date_range: Optional[tuple[date, date]] = None,
    ) -> List[ResourceConflict]:
        range_start = range_end = None
        if date_range is not None:
            range_start, range_end = date_range
            validate_range(range_start, range_end)
        return self._conflict_repo.list_for_resource(
            resource_id,
            resolved=resolved,
            range_start=range_start,
            range_end=range_end,
        )

    def list_open_conflicts(
        self,
        *,
        min_severity: ConflictSeverity | None = None,
        from_date: date | None = None,
        limit: int = 500,
    ) -> List[ResourceConflict]:
        if limit <= 0:
            raise ValidationError("limit must be > 0.", code="CONFLICT_INVALID_LIMIT")
        rows = self._conflict_repo.list_unresolved(from_date=from_date, limit=limit)
        if min_severity is not None:
            rows = [c for c in rows if c.severity.rank >= min_severity.rank]
        return rows

    def resolve_conflict(self, conflict_id: str, user_id: str, note: str | None = None) -> ResourceConflict:
        resolved = self._coordinator.resolve_conflict(conflict_id, user_id, note)
        # drop cached state read before the coordinator's own transaction
        self._session.expire_all()
        return resolved


__all__ = ["ConflictService"]
