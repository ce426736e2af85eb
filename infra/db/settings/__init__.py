from infra.db.settings.mapper import settings_from_orm, settings_to_orm
from infra.db.settings.repository import SqlAlchemyOrganizationSettingsRepository

__all__ = [
    "settings_to_orm",
    "settings_from_orm",
    "SqlAlchemyOrganizationSettingsRepository",
]
