from infra.db.capacity.mapper import capacity_entry_from_orm, capacity_entry_to_orm
from infra.db.capacity.repository import SqlAlchemyCapacityCalendarRepository

__all__ = [
    "capacity_entry_to_orm",
    "capacity_entry_from_orm",
    "SqlAlchemyCapacityCalendarRepository",
]
