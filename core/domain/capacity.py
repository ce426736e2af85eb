from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from core.domain.identifiers import generate_id


@dataclass
class CapacityCalendarEntry:
    """Hours a resource can work on one date; absence means the baseline."""

    id: str
    user_id: str
    date: date
    capacity_hours: float = 8.0
    organization_id: Optional[str] = None
    workspace_id: Optional[str] = None

    @staticmethod
    def create(
        user_id: str,
        day: date,
        capacity_hours: float = 8.0,
        organization_id: Optional[str] = None,
        workspace_id: Optional[str] = None,
    ) -> "CapacityCalendarEntry":
        return CapacityCalendarEntry(
            id=generate_id(),
            user_id=user_id,
            date=day,
            capacity_hours=capacity_hours,
            organization_id=organization_id,
            workspace_id=workspace_id,
        )


__all__ = ["CapacityCalendarEntry"]
