from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy import update
from sqlalchemy.orm import Session

from core.exceptions import ConcurrencyError, NotFoundError


def compare_and_set(
    session: Session,
    orm_type: type[Any],
    row_id: str,
    expected_version: int,
    values: Mapping[str, Any],
    *,
    entity: str,
) -> int:
    """
    Write values only if the row still carries expected_version; returns the
    bumped version. A miss raises <ENTITY>_NOT_FOUND when the row is gone and
    STALE_WRITE when someone else committed first.
    """
    bumped = int(expected_version) + 1
    result = session.execute(
        update(orm_type)
        .where(orm_type.id == row_id)
        .where(orm_type.version == expected_version)
        .values({**values, "version": bumped})
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 1:
        return bumped

    label = entity.strip().capitalize()
    if session.get(orm_type, row_id, populate_existing=True) is None:
        raise NotFoundError(f"{label} {row_id!r} not found.", code=f"{entity.upper()}_NOT_FOUND")
    raise ConcurrencyError(
        f"{label} {row_id!r} changed since version {expected_version}; reload and retry.",
        code="STALE_WRITE",
    )
