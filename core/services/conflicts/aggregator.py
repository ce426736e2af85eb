from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Iterator

from core.exceptions import InvalidDateRange
from core.interfaces import AllocationRepository
from core.models import AllocationType, ResourceAllocation
from core.services.conflicts.policy import TypeWeights


@dataclass(frozen=True)
class LoadContributor:
    allocation_id: str
    project_id: str
    task_id: str | None
    allocation_type: AllocationType
    allocation_percentage: float
    counted_percentage: float


@dataclass
class DailyLoad:
    day: date
    total: float = 0.0
    contributors: list[LoadContributor] = field(default_factory=list)


def iter_days(range_start: date, range_end: date) -> Iterator[date]:
    day = range_start
    while day <= range_end:
        yield day
        day += timedelta(days=1)


def validate_range(range_start: date, range_end: date) -> None:
    if range_start > range_end:
        raise InvalidDateRange(
            f"Range start {range_start} is after range end {range_end}.",
            code="INVALID_DATE_RANGE",
        )


def build_daily_loads(
    allocations: Iterable[ResourceAllocation],
    range_start: date,
    range_end: date,
    weights: TypeWeights | None = None,
) -> dict[date, DailyLoad]:
    """
    Day-by-day load for one resource over [range_start, range_end].
    Every day in the span is present; days with nothing booked have total 0.
    Zero-weight allocations are listed as contributors but add nothing.
    """
    validate_range(range_start, range_end)
    weights = weights or TypeWeights()
    loads = {day: DailyLoad(day=day) for day in iter_days(range_start, range_end)}

    for allocation in sorted(allocations, key=lambda a: (a.start_date, a.id)):
        if not allocation.overlaps(range_start, range_end):
            continue
        weight = weights.weight_for(allocation.type)
        pct = float(allocation.allocation_percentage or 0.0)
        counted = pct * weight
        contributor = LoadContributor(
            allocation_id=allocation.id,
            project_id=allocation.project_id,
            task_id=allocation.task_id,
            allocation_type=allocation.type,
            allocation_percentage=pct,
            counted_percentage=counted,
        )
        first = max(allocation.start_date, range_start)
        last = min(allocation.end_date, range_end)
        for day in iter_days(first, last):
            load = loads[day]
            load.total += counted
            load.contributors.append(contributor)
    return loads


class IntervalAggregator:
    def __init__(self, allocation_repo: AllocationRepository, weights: TypeWeights | None = None):
        self._allocation_repo = allocation_repo
        self._weights = weights or TypeWeights()

    def aggregate(
        self,
        resource_id: str,
        range_start: date,
        range_end: date,
        *,
        weights: TypeWeights | None = None,
    ) -> dict[date, DailyLoad]:
        validate_range(range_start, range_end)
        allocations = self._allocation_repo.list_for_resource_in_range(
            resource_id, range_start, range_end
        )
        return build_daily_loads(allocations, range_start, range_end, weights or self._weights)


__all__ = [
    "DailyLoad",
    "LoadContributor",
    "IntervalAggregator",
    "build_daily_loads",
    "iter_days",
    "validate_range",
]
