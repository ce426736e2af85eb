from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import Iterator, List, Optional

from core.models import (
    CapacityCalendarEntry,
    OrganizationCapacitySettings,
    Resource,
    ResourceAllocation,
    ResourceConflict,
)


class ResourceDirectory(ABC):
    @abstractmethod
    def get(self, resource_id: str) -> Optional[Resource]: ...

    def exists(self, resource_id: str) -> bool:
        return self.get(resource_id) is not None

    def is_active(self, resource_id: str) -> bool:
        resource = self.get(resource_id)
        return bool(resource is not None and resource.is_active)

    @abstractmethod
    def add(self, resource: Resource) -> None: ...


class AllocationRepository(ABC):
    @abstractmethod
    def add(self, allocation: ResourceAllocation) -> None: ...

    @abstractmethod
    def update(self, allocation: ResourceAllocation) -> None: ...

    @abstractmethod
    def delete(self, allocation_id: str) -> None: ...

    @abstractmethod
    def get(self, allocation_id: str) -> Optional[ResourceAllocation]: ...

    @abstractmethod
    def list_for_resource_in_range(
        self, resource_id: str, range_start: date, range_end: date
    ) -> List[ResourceAllocation]: ...

    @abstractmethod
    def list_by_resource(self, resource_id: str) -> List[ResourceAllocation]: ...

    @abstractmethod
    def list_by_project(self, project_id: str) -> List[ResourceAllocation]: ...

    @abstractmethod
    def resource_ids_in_range(self, range_start: date, range_end: date) -> List[str]: ...


class CapacityCalendarRepository(ABC):
    @abstractmethod
    def list_for_range(
        self,
        workspace_id: Optional[str],
        user_id: str,
        range_start: date,
        range_end: date,
    ) -> List[CapacityCalendarEntry]: ...

    @abstractmethod
    def upsert(self, entry: CapacityCalendarEntry) -> None: ...


class ConflictRepository(ABC):
    @abstractmethod
    def add(self, conflict: ResourceConflict) -> None: ...

    @abstractmethod
    def update(self, conflict: ResourceConflict) -> None: ...

    @abstractmethod
    def get(self, conflict_id: str) -> Optional[ResourceConflict]: ...

    @abstractmethod
    def unresolved_by_date(
        self, resource_id: str, range_start: date, range_end: date
    ) -> dict[date, ResourceConflict]: ...

    @abstractmethod
    def latest_resolved_by_date(
        self, resource_id: str, range_start: date, range_end: date
    ) -> dict[date, ResourceConflict]: ...

    @abstractmethod
    def list_for_resource(
        self,
        resource_id: str,
        *,
        resolved: Optional[bool] = None,
        range_start: Optional[date] = None,
        range_end: Optional[date] = None,
    ) -> List[ResourceConflict]: ...

    @abstractmethod
    def list_unresolved(
        self, *, from_date: Optional[date] = None, limit: int = 500
    ) -> List[ResourceConflict]: ...

    @abstractmethod
    def resource_ids_with_unresolved(self, range_start: date, range_end: date) -> List[str]: ...


class OrganizationSettingsRepository(ABC):
    @abstractmethod
    def get(self, organization_id: str) -> Optional[OrganizationCapacitySettings]: ...

    @abstractmethod
    def upsert(self, settings: OrganizationCapacitySettings) -> None: ...


@dataclass(frozen=True)
class LockTicket:
    key: str
    token: str


@dataclass(frozen=True)
class LockLease:
    key: str
    token: str
    expires_at: float


class ResourceLockProvider(ABC):
    """
    Per-resource mutual exclusion with leases.
    reserve() takes a place in line without blocking so callers can fix
    arrival order before handing work to another thread.
    """

    @abstractmethod
    def reserve(self, key: str) -> LockTicket: ...

    @abstractmethod
    def wait(self, ticket: LockTicket, timeout: float) -> LockLease: ...

    @abstractmethod
    def release(self, lease: LockLease) -> bool: ...

    @abstractmethod
    def is_held(self, lease: LockLease) -> bool: ...

    def cancel(self, ticket: LockTicket) -> None:
        """Give up a reservation that will never be waited on."""

    def acquire(self, key: str, timeout: float) -> LockLease:
        return self.wait(self.reserve(key), timeout)

    @contextmanager
    def held(self, key: str, timeout: float) -> Iterator[LockLease]:
        lease = self.acquire(key, timeout)
        try:
            yield lease
        finally:
            self.release(lease)


__all__ = [
    "ResourceDirectory",
    "AllocationRepository",
    "CapacityCalendarRepository",
    "ConflictRepository",
    "OrganizationSettingsRepository",
    "LockTicket",
    "LockLease",
    "ResourceLockProvider",
]
