from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Callable

from core.domain.identifiers import generate_lock_token
from core.exceptions import LockTimeoutError
from core.interfaces import LockLease, LockTicket, ResourceLockProvider

logger = logging.getLogger(__name__)


class InProcessResourceLocks(ResourceLockProvider):
    """
    Lock table keyed by resource id.
    Waiters on one key are served in reservation order. A lease past its TTL
    no longer blocks anyone: the waiter at the head of the line takes it over,
    and the old holder's is_held() turns false so it cannot commit.
    """

    def __init__(self, ttl_seconds: float = 30.0, clock: Callable[[], float] = time.monotonic):
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._cond = threading.Condition()
        self._queues: dict[str, deque[str]] = {}
        self._holders: dict[str, LockLease] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def reserve(self, key: str) -> LockTicket:
        ticket = LockTicket(key=key, token=generate_lock_token())
        with self._cond:
            self._queues.setdefault(key, deque()).append(ticket.token)
        return ticket

    def wait(self, ticket: LockTicket, timeout: float) -> LockLease:
        deadline = self._clock() + max(0.0, float(timeout))
        with self._cond:
            while True:
                queue = self._queues.get(ticket.key)
                if queue is None or ticket.token not in queue:
                    raise LockTimeoutError(
                        f"Lock reservation for {ticket.key} is no longer queued.",
                        code="LOCK_RESERVATION_LOST",
                    )
                now = self._clock()
                holder = self._holders.get(ticket.key)
                if holder is not None and holder.expires_at <= now:
                    logger.warning("Lease on resource %s expired; evicting holder", ticket.key)
                    del self._holders[ticket.key]
                    holder = None
                    self._cond.notify_all()
                if holder is None and queue[0] == ticket.token:
                    queue.popleft()
                    lease = LockLease(key=ticket.key, token=ticket.token, expires_at=now + self._ttl)
                    self._holders[ticket.key] = lease
                    return lease

                remaining = deadline - now
                if remaining <= 0:
                    queue.remove(ticket.token)
                    self._discard_if_idle(ticket.key)
                    self._cond.notify_all()
                    raise LockTimeoutError(
                        f"Timed out after {timeout:.2f}s waiting for resource {ticket.key}."
                    )
                wait_for = remaining
                if holder is not None:
                    wait_for = min(wait_for, max(holder.expires_at - now, 0.0))
                self._cond.wait(max(wait_for, 0.001))

    def release(self, lease: LockLease) -> bool:
        with self._cond:
            holder = self._holders.get(lease.key)
            if holder is None or holder.token != lease.token:
                return False
            del self._holders[lease.key]
            self._discard_if_idle(lease.key)
            self._cond.notify_all()
            return True

    def is_held(self, lease: LockLease) -> bool:
        with self._cond:
            holder = self._holders.get(lease.key)
            if holder is None or holder.token != lease.token:
                return False
            return holder.expires_at > self._clock()

    def cancel(self, ticket: LockTicket) -> None:
        with self._cond:
            queue = self._queues.get(ticket.key)
            if queue is not None and ticket.token in queue:
                queue.remove(ticket.token)
                self._discard_if_idle(ticket.key)
                self._cond.notify_all()

    def waiting(self, key: str) -> int:
        with self._cond:
            return len(self._queues.get(key) or ())

    def _discard_if_idle(self, key: str) -> None:
        queue = self._queues.get(key)
        if queue is not None and not queue and key not in self._holders:
            del self._queues[key]


__all__ = ["InProcessResourceLocks"]
