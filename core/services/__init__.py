from .allocation import AllocationService
from .capacity import CapacityCalendar
from .conflicts import ConflictLifecycleManager, IntervalAggregator, classify
from .conflicts.service import ConflictService
from .recompute import InProcessResourceLocks, RecomputationCoordinator

__all__ = [
    "AllocationService",
    "CapacityCalendar",
    "ConflictLifecycleManager",
    "ConflictService",
    "IntervalAggregator",
    "InProcessResourceLocks",
    "RecomputationCoordinator",
    "classify",
]
