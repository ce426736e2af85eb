from __future__ import annotations

from core.models import ResourceAllocation
from infra.db.models import ResourceAllocationORM
from infra.db.timestamps import as_utc


def allocation_to_orm(allocation: ResourceAllocation) -> ResourceAllocationORM:
    return ResourceAllocationORM(
        id=allocation.id,
        resource_id=allocation.resource_id,
        project_id=allocation.project_id,
        task_id=allocation.task_id,
        organization_id=allocation.organization_id,
        start_date=allocation.start_date,
        end_date=allocation.end_date,
        allocation_percentage=allocation.allocation_percentage,
        hours_per_day=allocation.hours_per_day,
        type=allocation.type,
        booking_source=allocation.booking_source,
        units_type=allocation.units_type,
        justification=allocation.justification,
        created_at=allocation.created_at,
        version=getattr(allocation, "version", 1),
    )


def allocation_from_orm(obj: ResourceAllocationORM) -> ResourceAllocation:
    return ResourceAllocation(
        id=obj.id,
        resource_id=obj.resource_id,
        project_id=obj.project_id,
        task_id=obj.task_id,
        organization_id=obj.organization_id,
        start_date=obj.start_date,
        end_date=obj.end_date,
        allocation_percentage=float(obj.allocation_percentage),
        hours_per_day=float(obj.hours_per_day),
        type=obj.type,
        booking_source=obj.booking_source,
        units_type=obj.units_type,
        justification=obj.justification,
        created_at=as_utc(obj.created_at),
        version=getattr(obj, "version", 1),
    )


__all__ = ["allocation_to_orm", "allocation_from_orm"]
