from infra.db.conflict.mapper import conflict_from_orm, conflict_to_orm
from infra.db.conflict.repository import SqlAlchemyConflictRepository

__all__ = [
    "conflict_to_orm",
    "conflict_from_orm",
    "SqlAlchemyConflictRepository",
]
