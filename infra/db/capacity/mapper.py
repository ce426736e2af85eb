from __future__ import annotations

from core.models import CapacityCalendarEntry
from infra.db.models import CapacityCalendarEntryORM


def capacity_entry_to_orm(entry: CapacityCalendarEntry) -> CapacityCalendarEntryORM:
    return CapacityCalendarEntryORM(
        id=entry.id,
        organization_id=entry.organization_id,
        workspace_id=entry.workspace_id,
        user_id=entry.user_id,
        date=entry.date,
        capacity_hours=entry.capacity_hours,
    )


def capacity_entry_from_orm(obj: CapacityCalendarEntryORM) -> CapacityCalendarEntry:
    return CapacityCalendarEntry(
        id=obj.id,
        organization_id=obj.organization_id,
        workspace_id=obj.workspace_id,
        user_id=obj.user_id,
        date=obj.date,
        capacity_hours=float(obj.capacity_hours),
    )


__all__ = ["capacity_entry_to_orm", "capacity_entry_from_orm"]
