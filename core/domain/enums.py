from __future__ import annotations

from enum import Enum


class AllocationType(str, Enum):
    HARD = "HARD"
    SOFT = "SOFT"
    GHOST = "GHOST"


class BookingSource(str, Enum):
    MANUAL = "MANUAL"
    JIRA = "JIRA"
    GITHUB = "GITHUB"
    AI = "AI"


class UnitsType(str, Enum):
    PERCENT = "PERCENT"
    HOURS = "HOURS"


class ConflictSeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    ConflictSeverity.LOW: 1,
    ConflictSeverity.MEDIUM: 2,
    ConflictSeverity.HIGH: 3,
    ConflictSeverity.CRITICAL: 4,
}


class RecomputationState(str, Enum):
    QUEUED = "QUEUED"
    LOCKED = "LOCKED"
    AGGREGATING = "AGGREGATING"
    CLASSIFYING = "CLASSIFYING"
    RECONCILING = "RECONCILING"
    DONE = "DONE"
    FAILED = "FAILED"


__all__ = [
    "AllocationType",
    "BookingSource",
    "UnitsType",
    "ConflictSeverity",
    "RecomputationState",
]
