from __future__ import annotations

import math
from dataclasses import dataclass

from core.models import ConflictSeverity
from core.services.conflicts.policy import SeverityBands

_EPS = 1e-9


@dataclass(frozen=True)
class Classification:
    severity: ConflictSeverity
    ratio: float


def load_ratio(total: float, capacity: float) -> float:
    if capacity <= 0:
        return math.inf if total > _EPS else 0.0
    return total / capacity


def classify(
    total: float,
    capacity: float,
    bands: SeverityBands | None = None,
) -> Classification | None:
    """None when the day is within capacity, otherwise the severity band of total/capacity."""
    if total <= capacity + _EPS:
        return None
    bands = bands or SeverityBands()
    ratio = load_ratio(total, capacity)
    if ratio <= bands.low_max + _EPS:
        severity = ConflictSeverity.LOW
    elif ratio <= bands.medium_max + _EPS:
        severity = ConflictSeverity.MEDIUM
    elif ratio <= bands.high_max + _EPS:
        severity = ConflictSeverity.HIGH
    else:
        severity = ConflictSeverity.CRITICAL
    return Classification(severity=severity, ratio=ratio)


__all__ = ["Classification", "classify", "load_ratio"]
