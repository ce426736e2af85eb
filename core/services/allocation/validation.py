from __future__ import annotations

import math
from datetime import date
from typing import Iterable

from core.exceptions import (
    HardCapExceeded,
    InvalidDateRange,
    InvalidPercentage,
    JustificationRequired,
    ResourceInactive,
    ResourceNotFound,
    ValidationError,
)
from core.interfaces import ResourceDirectory
from core.models import AllocationType, Resource, ResourceAllocation, UnitsType
from core.services.conflicts.aggregator import build_daily_loads
from core.services.conflicts.policy import CapacitySettings


def validate_date_range(start_date: date | None, end_date: date | None) -> None:
    if start_date is None or end_date is None:
        raise InvalidDateRange("start_date and end_date are required.", code="INVALID_DATE_RANGE")
    if start_date > end_date:
        raise InvalidDateRange(
            f"start_date {start_date} is after end_date {end_date}.",
            code="INVALID_DATE_RANGE",
        )


def validate_percentage(value: float | None) -> float:
    try:
        pct = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise InvalidPercentage(
            "allocation_percentage must be a number.",
            code="INVALID_PERCENTAGE",
        ) from exc
    if not math.isfinite(pct) or pct <= 0 or pct > 100:
        raise InvalidPercentage(
            "allocation_percentage must be > 0 and <= 100.",
            code="INVALID_PERCENTAGE",
        )
    return pct


def validate_hours_per_day(value: float | None) -> float:
    try:
        hours = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValidationError("hours_per_day must be a number.", code="INVALID_HOURS_PER_DAY") from exc
    if not math.isfinite(hours) or hours <= 0 or hours > 24:
        raise ValidationError("hours_per_day must be > 0 and <= 24.", code="INVALID_HOURS_PER_DAY")
    return hours


def resolve_percentage(
    units_type: UnitsType,
    allocation_percentage: float | None,
    hours_per_day: float,
    baseline_hours_per_day: float,
) -> float:
    """Percent of a baseline day; HOURS bookings are converted before the bound check."""
    if units_type == UnitsType.HOURS:
        return validate_percentage(hours_per_day / baseline_hours_per_day * 100.0)
    return validate_percentage(allocation_percentage)


def require_active_resource(directory: ResourceDirectory, resource_id: str) -> Resource:
    resource = directory.get(resource_id) if resource_id else None
    if resource is None:
        raise ResourceNotFound(f"Resource {resource_id!r} not found.", code="RESOURCE_NOT_FOUND")
    if not resource.accepts_bookings():
        raise ResourceInactive(f"Resource {resource_id!r} is inactive.", code="RESOURCE_INACTIVE")
    return resource


def projected_peak_load(
    candidate: ResourceAllocation,
    existing: Iterable[ResourceAllocation],
    settings: CapacitySettings,
) -> float:
    """Highest weighted daily load over the candidate's range if it were saved."""
    others = [a for a in existing if a.id != candidate.id]
    loads = build_daily_loads(
        [*others, candidate],
        candidate.start_date,
        candidate.end_date,
        settings.weights,
    )
    return max((load.total for load in loads.values()), default=0.0)


def enforce_governance(
    candidate: ResourceAllocation,
    existing: Iterable[ResourceAllocation],
    settings: CapacitySettings,
) -> float:
    governance = settings.governance
    projected = projected_peak_load(candidate, existing, settings)
    if governance.exceeds_hard_cap(projected):
        raise HardCapExceeded(
            f"Projected load {projected:.1f}% exceeds hard cap {governance.hard_cap_percent:.1f}%.",
            code="HARD_CAP_EXCEEDED",
        )
    needs_reason = governance.requires_justification(candidate.type, projected)
    if needs_reason and not (candidate.justification or "").strip():
        raise JustificationRequired(
            f"A justification is required for this {candidate.type.value} booking "
            f"(projected load {projected:.1f}%).",
            code="JUSTIFICATION_REQUIRED",
        )
    return projected


def coerce_allocation_type(value: AllocationType | str | None) -> AllocationType:
    if isinstance(value, AllocationType):
        return value
    try:
        return AllocationType((value or AllocationType.SOFT.value).upper())
    except ValueError as exc:
        raise ValidationError(f"Unknown allocation type {value!r}.", code="INVALID_ALLOCATION_TYPE") from exc


__all__ = [
    "validate_date_range",
    "validate_percentage",
    "validate_hours_per_day",
    "resolve_percentage",
    "require_active_resource",
    "projected_peak_load",
    "enforce_governance",
    "coerce_allocation_type",
]
