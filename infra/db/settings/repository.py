from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from core.interfaces import OrganizationSettingsRepository
from core.models import OrganizationCapacitySettings
from infra.db.models import OrganizationCapacitySettingsORM
from infra.db.settings.mapper import apply_settings, settings_from_orm, settings_to_orm


class SqlAlchemyOrganizationSettingsRepository(OrganizationSettingsRepository):
    def __init__(self, session: Session):
        self.session = session

    def get(self, organization_id: str) -> Optional[OrganizationCapacitySettings]:
        obj = self.session.get(OrganizationCapacitySettingsORM, organization_id, populate_existing=True)
        return settings_from_orm(obj) if obj else None

    def upsert(self, settings: OrganizationCapacitySettings) -> None:
        obj = self.session.get(OrganizationCapacitySettingsORM, settings.organization_id)
        if obj is None:
            self.session.add(settings_to_orm(settings))
        else:
            apply_settings(obj, settings)


__all__ = ["SqlAlchemyOrganizationSettingsRepository"]
