from core.domain import (
    AffectedAllocation,
    AllocationType,
    BookingSource,
    CapacityCalendarEntry,
    ConflictSeverity,
    OrganizationCapacitySettings,
    RecomputationState,
    Resource,
    ResourceAllocation,
    ResourceConflict,
    UnitsType,
    generate_id,
)

__all__ = [
    "generate_id",
    "AllocationType",
    "BookingSource",
    "UnitsType",
    "ConflictSeverity",
    "RecomputationState",
    "Resource",
    "ResourceAllocation",
    "CapacityCalendarEntry",
    "AffectedAllocation",
    "ResourceConflict",
    "OrganizationCapacitySettings",
]
