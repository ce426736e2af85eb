from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional

from core.domain.enums import AllocationType, BookingSource, UnitsType
from core.domain.identifiers import generate_id


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ResourceAllocation:
    id: str
    resource_id: str
    project_id: str
    start_date: date
    end_date: date
    allocation_percentage: float
    task_id: Optional[str] = None
    hours_per_day: float = 8.0
    type: AllocationType = AllocationType.SOFT
    booking_source: BookingSource = BookingSource.MANUAL
    units_type: UnitsType = UnitsType.PERCENT
    justification: Optional[str] = None
    organization_id: Optional[str] = None
    created_at: datetime = field(default_factory=_utc_now)
    version: int = 1

    @staticmethod
    def create(
        resource_id: str,
        project_id: str,
        start_date: date,
        end_date: date,
        allocation_percentage: float,
        **extra,
    ) -> "ResourceAllocation":
        return ResourceAllocation(
            id=generate_id(),
            resource_id=resource_id,
            project_id=project_id,
            start_date=start_date,
            end_date=end_date,
            allocation_percentage=allocation_percentage,
            **extra,
        )

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def overlaps(self, start: date, end: date) -> bool:
        return self.start_date <= end and self.end_date >= start


__all__ = ["ResourceAllocation"]
