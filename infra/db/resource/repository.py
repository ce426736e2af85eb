from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from core.interfaces import ResourceDirectory
from core.models import Resource
from infra.db.models import ResourceORM
from infra.db.resource.mapper import resource_from_orm, resource_to_orm


class SqlAlchemyResourceDirectory(ResourceDirectory):
    """Read-mostly view of the resources table; the engine only books against it."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, resource: Resource) -> None:
        self.session.add(resource_to_orm(resource))

    def get(self, resource_id: str) -> Optional[Resource]:
        # recompute workers share the table with writers in other sessions
        row = self.session.get(ResourceORM, resource_id, populate_existing=True)
        return None if row is None else resource_from_orm(row)

    def list_for_organization(self, organization_id: str) -> List[Resource]:
        rows = self.session.scalars(
            select(ResourceORM)
            .where(ResourceORM.organization_id == organization_id)
            .order_by(ResourceORM.name, ResourceORM.id)
        )
        return [resource_from_orm(row) for row in rows]


__all__ = ["SqlAlchemyResourceDirectory"]
