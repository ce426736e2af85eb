from __future__ import annotations

from uuid import uuid4


def generate_id() -> str:
    """Primary key for resources, allocations, calendar entries and conflicts."""
    return str(uuid4())


def generate_lock_token() -> str:
    # compact form; stored as resource_locks.owner_token
    return uuid4().hex


__all__ = ["generate_id", "generate_lock_token"]
