from sqlalchemy.orm import Session

from core.services.recompute.models import RecomputeRepositories
from infra.db.allocation import SqlAlchemyAllocationRepository
from infra.db.capacity import SqlAlchemyCapacityCalendarRepository
from infra.db.conflict import SqlAlchemyConflictRepository
from infra.db.resource import SqlAlchemyResourceDirectory
from infra.db.settings import SqlAlchemyOrganizationSettingsRepository


def build_recompute_repositories(session: Session) -> RecomputeRepositories:
    return RecomputeRepositories(
        allocations=SqlAlchemyAllocationRepository(session),
        conflicts=SqlAlchemyConflictRepository(session),
        capacity=SqlAlchemyCapacityCalendarRepository(session),
        resources=SqlAlchemyResourceDirectory(session),
        org_settings=SqlAlchemyOrganizationSettingsRepository(session),
    )


__all__ = [
    "SqlAlchemyAllocationRepository",
    "SqlAlchemyCapacityCalendarRepository",
    "SqlAlchemyConflictRepository",
    "SqlAlchemyResourceDirectory",
    "SqlAlchemyOrganizationSettingsRepository",
    "build_recompute_repositories",
]
