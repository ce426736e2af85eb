from __future__ import annotations

import logging
from datetime import date

from core.interfaces import CapacityCalendarRepository, ResourceDirectory
from core.services.conflicts.aggregator import iter_days, validate_range
from core.services.conflicts.policy import DEFAULT_BASELINE_HOURS_PER_DAY

logger = logging.getLogger(__name__)


class CapacityCalendar:
    """
    Read-only view of per-day capacity, as a percentage of the baseline day.
    Days without an entry are worth 100%. No weekday is special: a weekend
    or holiday only counts as unavailable when an entry says so.
    """

    def __init__(
        self,
        capacity_repo: CapacityCalendarRepository,
        resource_directory: ResourceDirectory | None = None,
        baseline_hours_per_day: float = DEFAULT_BASELINE_HOURS_PER_DAY,
    ):
        self._capacity_repo = capacity_repo
        self._resource_directory = resource_directory
        self._baseline_hours = float(baseline_hours_per_day)

    @property
    def baseline_hours_per_day(self) -> float:
        return self._baseline_hours

    def hours_to_percent(self, hours: float) -> float:
        return float(hours) / self._baseline_hours * 100.0

    def capacity_for_day(self, resource_id: str, day: date) -> float:
        return self.capacity_for_range(resource_id, day, day)[day]

    def capacity_for_range(self, resource_id: str, range_start: date, range_end: date) -> dict[date, float]:
        validate_range(range_start, range_end)
        workspace_id = self._workspace_for(resource_id)
        capacities = {day: 100.0 for day in iter_days(range_start, range_end)}
        for entry in self._capacity_repo.list_for_range(workspace_id, resource_id, range_start, range_end):
            if entry.date in capacities:
                capacities[entry.date] = self.hours_to_percent(entry.capacity_hours)
        return capacities

    def _workspace_for(self, resource_id: str) -> str | None:
        if self._resource_directory is None:
            return None
        resource = self._resource_directory.get(resource_id)
        return resource.workspace_id if resource is not None else None


__all__ = ["CapacityCalendar"]
