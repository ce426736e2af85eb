from infra.db.resource.mapper import resource_from_orm, resource_to_orm
from infra.db.resource.repository import SqlAlchemyResourceDirectory

__all__ = [
    "resource_to_orm",
    "resource_from_orm",
    "SqlAlchemyResourceDirectory",
]
