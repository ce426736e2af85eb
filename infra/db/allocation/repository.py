from __future__ import annotations

from datetime import date
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from core.interfaces import AllocationRepository
from core.models import ResourceAllocation
from infra.db.allocation.mapper import allocation_from_orm, allocation_to_orm
from infra.db.models import ResourceAllocationORM
from infra.db.optimistic import compare_and_set


class SqlAlchemyAllocationRepository(AllocationRepository):
    def __init__(self, session: Session):
        self.session = session

    def add(self, allocation: ResourceAllocation) -> None:
        self.session.add(allocation_to_orm(allocation))

    def update(self, allocation: ResourceAllocation) -> None:
        allocation.version = compare_and_set(
            self.session,
            ResourceAllocationORM,
            allocation.id,
            getattr(allocation, "version", 1),
            {
                "start_date": allocation.start_date,
                "end_date": allocation.end_date,
                "allocation_percentage": allocation.allocation_percentage,
                "hours_per_day": allocation.hours_per_day,
                "type": allocation.type,
                "booking_source": allocation.booking_source,
                "justification": allocation.justification,
                "task_id": allocation.task_id,
            },
            entity="allocation",
        )

    def delete(self, allocation_id: str) -> None:
        self.session.execute(
            delete(ResourceAllocationORM).where(ResourceAllocationORM.id == allocation_id)
        )

    def get(self, allocation_id: str) -> Optional[ResourceAllocation]:
        obj = self.session.get(ResourceAllocationORM, allocation_id, populate_existing=True)
        return allocation_from_orm(obj) if obj else None

    def list_for_resource_in_range(
        self, resource_id: str, range_start: date, range_end: date
    ) -> List[ResourceAllocation]:
        stmt = (
            select(ResourceAllocationORM)
            .where(
                ResourceAllocationORM.resource_id == resource_id,
                ResourceAllocationORM.start_date <= range_end,
                ResourceAllocationORM.end_date >= range_start,
            )
            .order_by(ResourceAllocationORM.start_date, ResourceAllocationORM.id)
            .execution_options(populate_existing=True)
        )
        rows = self.session.execute(stmt).scalars().all()
        return [allocation_from_orm(row) for row in rows]

    def list_by_resource(self, resource_id: str) -> List[ResourceAllocation]:
        stmt = (
            select(ResourceAllocationORM)
            .where(ResourceAllocationORM.resource_id == resource_id)
            .order_by(ResourceAllocationORM.start_date, ResourceAllocationORM.id)
            .execution_options(populate_existing=True)
        )
        rows = self.session.execute(stmt).scalars().all()
        return [allocation_from_orm(row) for row in rows]

    def list_by_project(self, project_id: str) -> List[ResourceAllocation]:
        stmt = (
            select(ResourceAllocationORM)
            .where(ResourceAllocationORM.project_id == project_id)
            .order_by(ResourceAllocationORM.start_date, ResourceAllocationORM.id)
            .execution_options(populate_existing=True)
        )
        rows = self.session.execute(stmt).scalars().all()
        return [allocation_from_orm(row) for row in rows]

    def resource_ids_in_range(self, range_start: date, range_end: date) -> List[str]:
        stmt = (
            select(ResourceAllocationORM.resource_id)
            .where(
                ResourceAllocationORM.start_date <= range_end,
                ResourceAllocationORM.end_date >= range_start,
            )
            .distinct()
        )
        return list(self.session.execute(stmt).scalars().all())


__all__ = ["SqlAlchemyAllocationRepository"]
