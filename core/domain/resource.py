from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core.domain.identifiers import generate_id


@dataclass
class Resource:
    """A bookable person or asset. Capacity calendars are looked up by workspace."""

    id: str
    name: str
    organization_id: Optional[str] = None
    workspace_id: Optional[str] = None
    is_active: bool = True

    @classmethod
    def create(cls, name: str, **scope) -> "Resource":
        return cls(id=generate_id(), name=(name or "").strip(), **scope)

    def accepts_bookings(self) -> bool:
        return self.is_active


__all__ = ["Resource"]
