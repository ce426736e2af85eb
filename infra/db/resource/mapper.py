from __future__ import annotations

from core.models import Resource
from infra.db.models import ResourceORM

_COLUMNS = ("id", "name", "organization_id", "workspace_id")


def resource_to_orm(resource: Resource) -> ResourceORM:
    row = ResourceORM(**{column: getattr(resource, column) for column in _COLUMNS})
    row.is_active = bool(resource.is_active)
    return row


def resource_from_orm(row: ResourceORM) -> Resource:
    return Resource(
        **{column: getattr(row, column) for column in _COLUMNS},
        is_active=bool(row.is_active),
    )


__all__ = ["resource_to_orm", "resource_from_orm"]
