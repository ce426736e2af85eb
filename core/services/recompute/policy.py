from __future__ import annotations

import os
from dataclasses import dataclass

from core.exceptions import ValidationError


@dataclass(frozen=True)
class RecomputePolicy:
    lock_ttl_seconds: float = 30.0
    lock_timeout_seconds: float = 10.0
    max_attempts: int = 3
    backoff_seconds: float = 0.05

    def __post_init__(self) -> None:
        if self.lock_ttl_seconds <= 0:
            raise ValidationError("Lock TTL must be > 0.", code="RECOMPUTE_INVALID_SETTING")
        if self.lock_timeout_seconds < 0:
            raise ValidationError("Lock timeout cannot be negative.", code="RECOMPUTE_INVALID_SETTING")
        if self.max_attempts < 1:
            raise ValidationError("max_attempts must be >= 1.", code="RECOMPUTE_INVALID_SETTING")
        if self.backoff_seconds < 0:
            raise ValidationError("Backoff cannot be negative.", code="RECOMPUTE_INVALID_SETTING")

    def backoff_for(self, attempt: int) -> float:
        return self.backoff_seconds * max(1, attempt)


def _env_number(name: str, default: float, cast=float):
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ValidationError(f"{name} must be a number, got {raw!r}.", code="RECOMPUTE_INVALID_SETTING") from exc


def load_recompute_policy() -> RecomputePolicy:
    return RecomputePolicy(
        lock_ttl_seconds=_env_number("CE_LOCK_TTL_SECONDS", 30.0),
        lock_timeout_seconds=_env_number("CE_LOCK_TIMEOUT_SECONDS", 10.0),
        max_attempts=_env_number("CE_RECOMPUTE_MAX_ATTEMPTS", 3, int),
        backoff_seconds=_env_number("CE_RECOMPUTE_BACKOFF_SECONDS", 0.05),
    )


__all__ = ["RecomputePolicy", "load_recompute_policy"]
