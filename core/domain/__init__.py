from core.domain.allocation import ResourceAllocation
from core.domain.capacity import CapacityCalendarEntry
from core.domain.conflict import AffectedAllocation, ResourceConflict
from core.domain.enums import (
    AllocationType,
    BookingSource,
    ConflictSeverity,
    RecomputationState,
    UnitsType,
)
from core.domain.identifiers import generate_id
from core.domain.resource import Resource
from core.domain.settings import OrganizationCapacitySettings

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
