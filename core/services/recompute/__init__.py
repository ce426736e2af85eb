from core.services.recompute.coordinator import RecomputationCoordinator
from core.services.recompute.locks import InProcessResourceLocks
from core.services.recompute.models import (
    RecomputationRun,
    RecomputeRepositories,
    RecomputeRequest,
    RecomputeResult,
)
from core.services.recompute.policy import RecomputePolicy, load_recompute_policy

__all__ = [
    "RecomputationCoordinator",
    "InProcessResourceLocks",
    "RecomputationRun",
    "RecomputeRepositories",
    "RecomputeRequest",
    "RecomputeResult",
    "RecomputePolicy",
    "load_recompute_policy",
]
