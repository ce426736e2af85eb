from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class OrganizationCapacitySettings:
    """Per-organization overrides; None means use the process default."""

    organization_id: str
    severity_low_max: Optional[float] = None
    severity_medium_max: Optional[float] = None
    severity_high_max: Optional[float] = None
    soft_weight: Optional[float] = None
    ghost_weight: Optional[float] = None
    hard_cap_percent: Optional[float] = None
    require_justification_above: Optional[float] = None
    justification_required_types: Optional[str] = None


__all__ = ["OrganizationCapacitySettings"]
