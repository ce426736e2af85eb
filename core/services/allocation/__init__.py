from core.services.allocation.service import AllocationService

__all__ = ["AllocationService"]
