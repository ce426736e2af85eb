from __future__ import annotations

from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from core.exceptions import ValidationError
from core.interfaces import CapacityCalendarRepository
from core.models import CapacityCalendarEntry
from infra.db.capacity.mapper import capacity_entry_from_orm, capacity_entry_to_orm
from infra.db.models import CapacityCalendarEntryORM


class SqlAlchemyCapacityCalendarRepository(CapacityCalendarRepository):
    def __init__(self, session: Session):
        self.session = session

    def list_for_range(
        self,
        workspace_id: Optional[str],
        user_id: str,
        range_start: date,
        range_end: date,
    ) -> List[CapacityCalendarEntry]:
        stmt = select(CapacityCalendarEntryORM).where(
            CapacityCalendarEntryORM.user_id == user_id,
            CapacityCalendarEntryORM.date >= range_start,
            CapacityCalendarEntryORM.date <= range_end,
        )
        if workspace_id is not None:
            stmt = stmt.where(CapacityCalendarEntryORM.workspace_id == workspace_id)
        stmt = stmt.order_by(CapacityCalendarEntryORM.date).execution_options(populate_existing=True)
        rows = self.session.execute(stmt).scalars().all()
        return [capacity_entry_from_orm(row) for row in rows]

    def upsert(self, entry: CapacityCalendarEntry) -> None:
        if entry.capacity_hours < 0:
            raise ValidationError("capacity_hours cannot be negative.", code="CAPACITY_NEGATIVE_HOURS")
        stmt = select(CapacityCalendarEntryORM).where(
            CapacityCalendarEntryORM.user_id == entry.user_id,
            CapacityCalendarEntryORM.date == entry.date,
        )
        if entry.workspace_id is None:
            stmt = stmt.where(CapacityCalendarEntryORM.workspace_id.is_(None))
        else:
            stmt = stmt.where(CapacityCalendarEntryORM.workspace_id == entry.workspace_id)
        existing = self.session.execute(stmt).scalars().first()
        if existing is None:
            self.session.add(capacity_entry_to_orm(entry))
            return
        existing.capacity_hours = entry.capacity_hours
        existing.organization_id = entry.organization_id
        entry.id = existing.id


__all__ = ["SqlAlchemyCapacityCalendarRepository"]
