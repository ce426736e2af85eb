from __future__ import annotations

from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from core.exceptions import NotFoundError
from core.interfaces import ConflictRepository
from core.models import ResourceConflict
from infra.db.conflict.mapper import conflict_from_orm, conflict_to_orm, conflict_values
from infra.db.models import ResourceConflictORM


class SqlAlchemyConflictRepository(ConflictRepository):
    def __init__(self, session: Session):
        self.session = session

    def add(self, conflict: ResourceConflict) -> None:
        self.session.add(conflict_to_orm(conflict))

    def update(self, conflict: ResourceConflict) -> None:
        obj = self.session.get(ResourceConflictORM, conflict.id)
        if obj is None:
            raise NotFoundError("Conflict not found.", code="CONFLICT_NOT_FOUND")
        for key, value in conflict_values(conflict).items():
            setattr(obj, key, value)

    def get(self, conflict_id: str) -> Optional[ResourceConflict]:
        obj = self.session.get(ResourceConflictORM, conflict_id, populate_existing=True)
        return conflict_from_orm(obj) if obj else None

    def _in_range(self, resource_id: str, range_start: date, range_end: date):
        return select(ResourceConflictORM).where(
            ResourceConflictORM.resource_id == resource_id,
            ResourceConflictORM.conflict_date >= range_start,
            ResourceConflictORM.conflict_date <= range_end,
        )

    def unresolved_by_date(
        self, resource_id: str, range_start: date, range_end: date
    ) -> dict[date, ResourceConflict]:
        stmt = (
            self._in_range(resource_id, range_start, range_end)
            .where(ResourceConflictORM.resolved.is_(False))
            .execution_options(populate_existing=True)
        )
        rows = self.session.execute(stmt).scalars().all()
        return {row.conflict_date: conflict_from_orm(row) for row in rows}

    def latest_resolved_by_date(
        self, resource_id: str, range_start: date, range_end: date
    ) -> dict[date, ResourceConflict]:
        stmt = (
            self._in_range(resource_id, range_start, range_end)
            .where(ResourceConflictORM.resolved.is_(True))
            .order_by(
                ResourceConflictORM.conflict_date,
                ResourceConflictORM.resolved_at,
                ResourceConflictORM.updated_at,
            )
            .execution_options(populate_existing=True)
        )
        latest: dict[date, ResourceConflict] = {}
        for row in self.session.execute(stmt).scalars().all():
            latest[row.conflict_date] = conflict_from_orm(row)
        return latest

    def list_for_resource(
        self,
        resource_id: str,
        *,
        resolved: Optional[bool] = None,
        range_start: Optional[date] = None,
        range_end: Optional[date] = None,
    ) -> List[ResourceConflict]:
        stmt = select(ResourceConflictORM).where(ResourceConflictORM.resource_id == resource_id)
        if resolved is not None:
            stmt = stmt.where(ResourceConflictORM.resolved.is_(bool(resolved)))
        if range_start is not None:
            stmt = stmt.where(ResourceConflictORM.conflict_date >= range_start)
        if range_end is not None:
            stmt = stmt.where(ResourceConflictORM.conflict_date <= range_end)
        stmt = stmt.order_by(
            ResourceConflictORM.conflict_date,
            ResourceConflictORM.detected_at,
        ).execution_options(populate_existing=True)
        rows = self.session.execute(stmt).scalars().all()
        return [conflict_from_orm(row) for row in rows]

    def list_unresolved(
        self, *, from_date: Optional[date] = None, limit: int = 500
    ) -> List[ResourceConflict]:
        stmt = select(ResourceConflictORM).where(ResourceConflictORM.resolved.is_(False))
        if from_date is not None:
            stmt = stmt.where(ResourceConflictORM.conflict_date >= from_date)
        stmt = (
            stmt.order_by(
                ResourceConflictORM.severity_rank.desc(),
                ResourceConflictORM.conflict_date.asc(),
            )
            .limit(max(1, int(limit)))
            .execution_options(populate_existing=True)
        )
        rows = self.session.execute(stmt).scalars().all()
        return [conflict_from_orm(row) for row in rows]

    def resource_ids_with_unresolved(self, range_start: date, range_end: date) -> List[str]:
        stmt = (
            select(ResourceConflictORM.resource_id)
            .where(
                ResourceConflictORM.resolved.is_(False),
                ResourceConflictORM.conflict_date >= range_start,
                ResourceConflictORM.conflict_date <= range_end,
            )
            .distinct()
        )
        return list(self.session.execute(stmt).scalars().all())


__all__ = ["SqlAlchemyConflictRepository"]
