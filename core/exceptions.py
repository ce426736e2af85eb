# core/exceptions.py
from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base class for domain-level errors."""

    retryable: bool = False

    def __init__(self, message: str, *, code: str | None = None):
        super().__init__(message)
        self.code = code or self.__class__.__name__


class ValidationError(DomainError):
    """Raised when data is invalid or violates constraints."""


class InvalidDateRange(ValidationError):
    """start_date is after end_date."""


class InvalidPercentage(ValidationError):
    """Allocation percentage outside (0, 100]."""


class ResourceNotFound(ValidationError):
    """The referenced resource does not exist."""


class ResourceInactive(ValidationError):
    """The referenced resource exists but cannot take new bookings."""


class JustificationRequired(ValidationError):
    """Governance policy requires a justification for this booking."""


class HardCapExceeded(ValidationError):
    """The booking would push a day over the organization hard cap."""


class NotFoundError(DomainError):
    """Raised when an entity is not found."""


class BusinessRuleError(DomainError):
    """Raised when business rules are violated."""


class AlreadyResolved(BusinessRuleError):
    """Raised when resolving a conflict that is no longer unresolved."""


class ConcurrencyError(DomainError):
    """Raised when optimistic locking detects a stale update."""


class LockTimeoutError(ConcurrencyError):
    """The per-resource lock could not be acquired in time."""

    retryable = True

    def __init__(self, message: str, *, request: Any = None, code: str | None = None):
        super().__init__(message, code=code or "LOCK_TIMEOUT")
        self.request = request


class LeaseExpiredError(ConcurrencyError):
    """The lock lease ran out before the transaction could commit."""

    retryable = True

    def __init__(self, message: str, *, code: str | None = None):
        super().__init__(message, code=code or "LEASE_EXPIRED")


class RecomputationError(DomainError):
    """Recomputation failed and was rolled back; safe to retry."""

    retryable = True

    def __init__(self, message: str, *, request: Any = None, code: str | None = None):
        super().__init__(message, code=code or "RECOMPUTATION_FAILED")
        self.request = request


__all__ = [
    "DomainError",
    "ValidationError",
    "InvalidDateRange",
    "InvalidPercentage",
    "ResourceNotFound",
    "ResourceInactive",
    "JustificationRequired",
    "HardCapExceeded",
    "NotFoundError",
    "BusinessRuleError",
    "AlreadyResolved",
    "ConcurrencyError",
    "LockTimeoutError",
    "LeaseExpiredError",
    "RecomputationError",
]
