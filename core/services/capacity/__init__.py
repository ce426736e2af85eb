from core.services.capacity.calendar import CapacityCalendar

__all__ = ["CapacityCalendar"]
