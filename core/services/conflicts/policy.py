from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Optional

from core.exceptions import ValidationError
from core.interfaces import OrganizationSettingsRepository
from core.models import AllocationType, OrganizationCapacitySettings

logger = logging.getLogger(__name__)

DEFAULT_SEVERITY_BANDS = (1.2, 1.5, 2.0)
DEFAULT_BASELINE_HOURS_PER_DAY = 8.0


@dataclass(frozen=True)
class SeverityBands:
    """Inclusive upper ratio bounds for LOW, MEDIUM and HIGH; above is CRITICAL."""

    low_max: float = DEFAULT_SEVERITY_BANDS[0]
    medium_max: float = DEFAULT_SEVERITY_BANDS[1]
    high_max: float = DEFAULT_SEVERITY_BANDS[2]

    def __post_init__(self) -> None:
        if not (1.0 < self.low_max <= self.medium_max <= self.high_max):
            raise ValidationError(
                "Severity bands must satisfy 1.0 < low <= medium <= high.",
                code="CAPACITY_INVALID_SEVERITY_BANDS",
            )


@dataclass(frozen=True)
class TypeWeights:
    hard: float = 1.0
    soft: float = 1.0
    ghost: float = 0.0

    def __post_init__(self) -> None:
        for name in ("hard", "soft", "ghost"):
            value = getattr(self, name)
            if value < 0:
                raise ValidationError(
                    f"{name} weight cannot be negative.",
                    code="CAPACITY_INVALID_WEIGHT",
                )

    def weight_for(self, allocation_type: AllocationType) -> float:
        if allocation_type == AllocationType.HARD:
            return self.hard
        if allocation_type == AllocationType.GHOST:
            return self.ghost
        return self.soft


@dataclass(frozen=True)
class GovernancePolicy:
    hard_cap_percent: Optional[float] = None
    require_justification_above: Optional[float] = None
    justification_required_types: frozenset[AllocationType] = field(default_factory=frozenset)

    def requires_justification(self, allocation_type: AllocationType, projected_load: float) -> bool:
        if allocation_type in self.justification_required_types:
            return True
        threshold = self.require_justification_above
        return threshold is not None and projected_load > threshold + 1e-9

    def exceeds_hard_cap(self, projected_load: float) -> bool:
        cap = self.hard_cap_percent
        return cap is not None and projected_load > cap + 1e-9


@dataclass(frozen=True)
class CapacitySettings:
    bands: SeverityBands = field(default_factory=SeverityBands)
    weights: TypeWeights = field(default_factory=TypeWeights)
    governance: GovernancePolicy = field(default_factory=GovernancePolicy)
    baseline_hours_per_day: float = DEFAULT_BASELINE_HOURS_PER_DAY


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValidationError(f"{name} must be a number, got {raw!r}.", code="CAPACITY_INVALID_SETTING") from exc


def parse_allocation_types(raw: str | None) -> frozenset[AllocationType]:
    values = set()
    for item in (raw or "").split(","):
        name = item.strip().upper()
        if not name:
            continue
        try:
            values.add(AllocationType(name))
        except ValueError as exc:
            raise ValidationError(
                f"Unknown allocation type {name!r}.",
                code="CAPACITY_INVALID_SETTING",
            ) from exc
    return frozenset(values)


def parse_severity_bands(raw: str | None) -> SeverityBands:
    text = (raw or "").strip()
    if not text:
        return SeverityBands()
    parts = [p.strip() for p in text.split(",") if p.strip()]
    if len(parts) != 3:
        raise ValidationError(
            "CE_SEVERITY_BANDS needs three comma-separated ratios.",
            code="CAPACITY_INVALID_SEVERITY_BANDS",
        )
    try:
        low, medium, high = (float(p) for p in parts)
    except ValueError as exc:
        raise ValidationError(
            f"CE_SEVERITY_BANDS must be numeric, got {text!r}.",
            code="CAPACITY_INVALID_SEVERITY_BANDS",
        ) from exc
    return SeverityBands(low, medium, high)


def load_capacity_settings() -> CapacitySettings:
    baseline = _env_float("CE_BASELINE_HOURS_PER_DAY", DEFAULT_BASELINE_HOURS_PER_DAY)
    if baseline is None or baseline <= 0:
        raise ValidationError(
            "CE_BASELINE_HOURS_PER_DAY must be > 0.",
            code="CAPACITY_INVALID_SETTING",
        )
    return CapacitySettings(
        bands=parse_severity_bands(os.getenv("CE_SEVERITY_BANDS")),
        weights=TypeWeights(
            soft=_env_float("CE_SOFT_WEIGHT", 1.0),
            ghost=_env_float("CE_GHOST_WEIGHT", 0.0),
        ),
        governance=GovernancePolicy(
            hard_cap_percent=_env_float("CE_HARD_CAP_PERCENT", None),
            require_justification_above=_env_float("CE_REQUIRE_JUSTIFICATION_ABOVE", None),
            justification_required_types=parse_allocation_types(
                os.getenv("CE_JUSTIFICATION_REQUIRED_TYPES")
            ),
        ),
        baseline_hours_per_day=baseline,
    )


def apply_organization_overrides(
    base: CapacitySettings, overrides: OrganizationCapacitySettings | None
) -> CapacitySettings:
    if overrides is None:
        return base
    bands = SeverityBands(
        low_max=_pick(overrides.severity_low_max, base.bands.low_max),
        medium_max=_pick(overrides.severity_medium_max, base.bands.medium_max),
        high_max=_pick(overrides.severity_high_max, base.bands.high_max),
    )
    weights = TypeWeights(
        hard=base.weights.hard,
        soft=_pick(overrides.soft_weight, base.weights.soft),
        ghost=_pick(overrides.ghost_weight, base.weights.ghost),
    )
    governance = base.governance
    if overrides.hard_cap_percent is not None:
        governance = replace(governance, hard_cap_percent=overrides.hard_cap_percent)
    if overrides.require_justification_above is not None:
        governance = replace(
            governance, require_justification_above=overrides.require_justification_above
        )
    if overrides.justification_required_types is not None:
        governance = replace(
            governance,
            justification_required_types=parse_allocation_types(overrides.justification_required_types),
        )
    return replace(base, bands=bands, weights=weights, governance=governance)


def _pick(value: Optional[float], default: float) -> float:
    return default if value is None else float(value)


class CapacitySettingsProvider:
    """
    Resolves the effective settings for an organization.
    Process defaults come from the environment once; organization rows are
    read through the repository on every call so edits apply immediately.
    """

    def __init__(
        self,
        defaults: CapacitySettings | None = None,
        org_settings_repo: OrganizationSettingsRepository | None = None,
    ):
        self._defaults = defaults or load_capacity_settings()
        self._org_settings_repo = org_settings_repo

    @property
    def defaults(self) -> CapacitySettings:
        return self._defaults

    def for_organization(
        self,
        organization_id: str | None,
        org_settings_repo: OrganizationSettingsRepository | None = None,
    ) -> CapacitySettings:
        repo = org_settings_repo or self._org_settings_repo
        if not organization_id or repo is None:
            return self._defaults
        overrides = repo.get(organization_id)
        if overrides is not None:
            logger.debug("Applying capacity overrides for organization %s", organization_id)
        return apply_organization_overrides(self._defaults, overrides)


__all__ = [
    "SeverityBands",
    "TypeWeights",
    "GovernancePolicy",
    "CapacitySettings",
    "CapacitySettingsProvider",
    "load_capacity_settings",
    "apply_organization_overrides",
    "parse_allocation_types",
    "parse_severity_bands",
]
