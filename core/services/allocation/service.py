from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from core.events.domain_events import AllocationChanged, CapacityEvents, capacity_events
from core.exceptions import ConcurrencyError, NotFoundError, ValidationError
from core.interfaces import (
    AllocationRepository,
    OrganizationSettingsRepository,
    ResourceDirectory,
)
from core.models import (
    AllocationType,
    BookingSource,
    ResourceAllocation,
    UnitsType,
)
from core.services.allocation.validation import (
    coerce_allocation_type,
    enforce_governance,
    require_active_resource,
    resolve_percentage,
    validate_date_range,
    validate_hours_per_day,
)
from core.services.conflicts.policy import CapacitySettings, CapacitySettingsProvider
from core.services.recompute.coordinator import RecomputationCoordinator
from core.services.recompute.models import RecomputeRequest

logger = logging.getLogger(__name__)


class AllocationService:
    """
    Owns ResourceAllocation rows. Each mutation commits, then hands exactly
    one recomputation request to the coordinator. A recomputation failure
    surfaces to the caller after the write has committed; retrying the
    recomputation is safe, retrying the write is not needed.
    """

    def __init__(
        self,
        session: Session,
        allocation_repo: AllocationRepository,
        resource_directory: ResourceDirectory,
        coordinator: RecomputationCoordinator,
        settings_provider: CapacitySettingsProvider,
        org_settings_repo: OrganizationSettingsRepository | None = None,
        events: CapacityEvents | None = None,
    ):
        self._session = session
        self._allocation_repo = allocation_repo
        self._resource_directory = resource_directory
        self._coordinator = coordinator
        self._settings_provider = settings_provider
        self._org_settings_repo = org_settings_repo
        self._events = events or capacity_events

    def record_allocation(
        self,
        resource_id: str,
        project_id: str,
        start_date: date,
        end_date: date,
        allocation_percentage: float | None = None,
        *,
        task_id: str | None = None,
        hours_per_day: float = 8.0,
        allocation_type: AllocationType | str = AllocationType.SOFT,
        booking_source: BookingSource = BookingSource.MANUAL,
        units_type: UnitsType = UnitsType.PERCENT,
        justification: str | None = None,
    ) -> ResourceAllocation:
        if not (project_id or "").strip():
            raise ValidationError("project_id is required.", code="PROJECT_REQUIRED")
        validate_date_range(start_date, end_date)
        hours = validate_hours_per_day(hours_per_day)
        resource = require_active_resource(self._resource_directory, resource_id)
        settings = self._settings_for(resource.organization_id)
        pct = resolve_percentage(units_type, allocation_percentage, hours, settings.baseline_hours_per_day)

        allocation = ResourceAllocation.create(
            resource_id=resource.id,
            project_id=project_id.strip(),
            start_date=start_date,
            end_date=end_date,
            allocation_percentage=pct,
            task_id=task_id,
            hours_per_day=hours,
            type=coerce_allocation_type(allocation_type),
            booking_source=booking_source,
            units_type=units_type,
            justification=(justification or "").strip() or None,
            organization_id=resource.organization_id,
        )
        existing = self._allocation_repo.list_for_resource_in_range(resource.id, start_date, end_date)
        enforce_governance(allocation, existing, settings)

        try:
            self._allocation_repo.add(allocation)
            self._session.commit()
        except Exception as exc:
            self._session.rollback()
            logger.error("Error recording allocation for resource %s: %s", resource.id, exc)
            raise
        logger.info(
            "Recorded allocation %s resource=%s project=%s %s..%s %.1f%% %s",
            allocation.id,
            allocation.resource_id,
            allocation.project_id,
            allocation.start_date,
            allocation.end_date,
            allocation.allocation_percentage,
            allocation.type.value,
        )
        self._after_write(allocation, "created", allocation.start_date, allocation.end_date)
        return allocation

    def update_allocation(
        self,
        allocation_id: str,
        *,
        expected_version: int | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        allocation_percentage: float | None = None,
        hours_per_day: float | None = None,
        allocation_type: AllocationType | str | None = None,
        booking_source: BookingSource | None = None,
        justification: str | None = None,
        task_id: str | None = None,
    ) -> ResourceAllocation:
        allocation = self._require(allocation_id)
        if expected_version is not None and allocation.version != expected_version:
            raise ConcurrencyError(
                "Allocation changed since you opened it. Refresh and try again.",
                code="STALE_WRITE",
            )
        old_start, old_end = allocation.start_date, allocation.end_date

        new_start = start_date if start_date is not None else allocation.start_date
        new_end = end_date if end_date is not None else allocation.end_date
        validate_date_range(new_start, new_end)
        hours = validate_hours_per_day(hours_per_day if hours_per_day is not None else allocation.hours_per_day)
        resource = require_active_resource(self._resource_directory, allocation.resource_id)
        settings = self._settings_for(resource.organization_id)
        pct = resolve_percentage(
            allocation.units_type,
            allocation_percentage if allocation_percentage is not None else allocation.allocation_percentage,
            hours,
            settings.baseline_hours_per_day,
        )

        allocation.start_date = new_start
        allocation.end_date = new_end
        allocation.allocation_percentage = pct
        allocation.hours_per_day = hours
        if allocation_type is not None:
            allocation.type = coerce_allocation_type(allocation_type)
        if booking_source is not None:
            allocation.booking_source = booking_source
        if justification is not None:
            allocation.justification = justification.strip() or None
        if task_id is not None:
            allocation.task_id = task_id.strip() or None

        existing = self._allocation_repo.list_for_resource_in_range(allocation.resource_id, new_start, new_end)
        enforce_governance(allocation, existing, settings)

        try:
            self._allocation_repo.update(allocation)
            self._session.commit()
        except Exception as exc:
            self._session.rollback()
            logger.error("Error updating allocation %s: %s", allocation_id, exc)
            raise
        logger.info(
            "Updated allocation %s resource=%s %s..%s -> %s..%s %.1f%%",
            allocation.id,
            allocation.resource_id,
            old_start,
            old_end,
            allocation.start_date,
            allocation.end_date,
            allocation.allocation_percentage,
        )
        # covering span of old and new ranges so vacated days are reassessed
        self._after_write(
            allocation,
            "updated",
            min(old_start, allocation.start_date),
            max(old_end, allocation.end_date),
        )
        return allocation

    def delete_allocation(self, allocation_id: str) -> None:
        allocation = self._require(allocation_id)
        try:
            self._allocation_repo.delete(allocation_id)
            self._session.commit()
        except Exception as exc:
            self._session.rollback()
            logger.error("Error deleting allocation %s: %s", allocation_id, exc)
            raise
        logger.info(
            "Deleted allocation %s resource=%s %s..%s",
            allocation.id,
            allocation.resource_id,
            allocation.start_date,
            allocation.end_date,
        )
        self._after_write(allocation, "deleted", allocation.start_date, allocation.end_date)

    def get_allocation(self, allocation_id: str) -> Optional[ResourceAllocation]:
        return self._allocation_repo.get(allocation_id)

    def list_allocations_for_resource(self, resource_id: str) -> List[ResourceAllocation]:
        return self._allocation_repo.list_by_resource(resource_id)

    def list_allocations_for_project(self, project_id: str) -> List[ResourceAllocation]:
        return self._allocation_repo.list_by_project(project_id)

    def _require(self, allocation_id: str) -> ResourceAllocation:
        allocation = self._allocation_repo.get(allocation_id)
        if allocation is None:
            raise NotFoundError("Allocation not found.", code="ALLOCATION_NOT_FOUND")
        return allocation

    def _settings_for(self, organization_id: str | None) -> CapacitySettings:
        return self._settings_provider.for_organization(organization_id, self._org_settings_repo)

    def _after_write(
        self,
        allocation: ResourceAllocation,
        action: str,
        range_start: date,
        range_end: date,
    ) -> None:
        self._events.allocation_changed.emit(
            AllocationChanged(
                allocation_id=allocation.id,
                resource_id=allocation.resource_id,
                project_id=allocation.project_id,
                action=action,
                range_start=range_start,
                range_end=range_end,
            )
        )
        self._coordinator.schedule(
            RecomputeRequest(
                resource_id=allocation.resource_id,
                range_start=range_start,
                range_end=range_end,
                reason=f"allocation.{action}",
            )
        )


__all__ = ["AllocationService"]
