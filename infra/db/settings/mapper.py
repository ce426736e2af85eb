from __future__ import annotations

from core.models import OrganizationCapacitySettings
from infra.db.models import OrganizationCapacitySettingsORM

_FIELDS = (
    "severity_low_max",
    "severity_medium_max",
    "severity_high_max",
    "soft_weight",
    "ghost_weight",
    "hard_cap_percent",
    "require_justification_above",
    "justification_required_types",
)


def settings_to_orm(settings: OrganizationCapacitySettings) -> OrganizationCapacitySettingsORM:
    return OrganizationCapacitySettingsORM(
        organization_id=settings.organization_id,
        **{name: getattr(settings, name) for name in _FIELDS},
    )


def settings_from_orm(obj: OrganizationCapacitySettingsORM) -> OrganizationCapacitySettings:
    return OrganizationCapacitySettings(
        organization_id=obj.organization_id,
        **{name: getattr(obj, name) for name in _FIELDS},
    )


def apply_settings(obj: OrganizationCapacitySettingsORM, settings: OrganizationCapacitySettings) -> None:
    for name in _FIELDS:
        setattr(obj, name, getattr(settings, name))


__all__ = ["settings_to_orm", "settings_from_orm", "apply_settings"]
