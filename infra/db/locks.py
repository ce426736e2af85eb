from __future__ import annotations

import logging
import time
from typing import Callable

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.exceptions import LockTimeoutError
from core.interfaces import LockLease, LockTicket, ResourceLockProvider
from core.services.recompute.locks import InProcessResourceLocks
from infra.db.models import ResourceLockORM

logger = logging.getLogger(__name__)


class SqlAlchemyResourceLockProvider(ResourceLockProvider):
    """
    Lease rows in resource_locks shared by every process on the database.
    Inside one process waiters still queue FIFO on the local lock table before
    polling the row; across processes there is no ordering guarantee.
    An expired row is taken over with a guarded UPDATE so only one waiter wins.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        ttl_seconds: float = 30.0,
        *,
        poll_interval: float = 0.05,
        clock: Callable[[], float] = time.time,
    ):
        self._session_factory = session_factory
        self._ttl = float(ttl_seconds)
        self._poll_interval = float(poll_interval)
        self._clock = clock
        self._local = InProcessResourceLocks(ttl_seconds=ttl_seconds)

    def reserve(self, key: str) -> LockTicket:
        return self._local.reserve(key)

    def cancel(self, ticket: LockTicket) -> None:
        self._local.cancel(ticket)

    def wait(self, ticket: LockTicket, timeout: float) -> LockLease:
        started = time.monotonic()
        local_lease = self._local.wait(ticket, timeout)
        deadline = started + max(0.0, float(timeout))
        try:
            while True:
                now = self._clock()
                if self._try_acquire(ticket.key, ticket.token, now):
                    return LockLease(key=ticket.key, token=ticket.token, expires_at=now + self._ttl)
                if time.monotonic() >= deadline:
                    raise LockTimeoutError(
                        f"Timed out after {timeout:.2f}s waiting for resource {ticket.key}."
                    )
                time.sleep(self._poll_interval)
        except BaseException:
            # the in-process lease must not outlive a failed row acquisition
            self._local.release(local_lease)
            raise

    def release(self, lease: LockLease) -> bool:
        session = self._session_factory()
        try:
            result = session.execute(
                delete(ResourceLockORM).where(
                    ResourceLockORM.resource_key == lease.key,
                    ResourceLockORM.owner_token == lease.token,
                )
            )
            session.commit()
            released = result.rowcount == 1
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
        self._local.release(lease)
        if not released:
            logger.warning("Lock row for resource %s was taken over before release", lease.key)
        return released

    def is_held(self, lease: LockLease) -> bool:
        session = self._session_factory()
        try:
            row = session.get(ResourceLockORM, lease.key)
            return bool(
                row is not None
                and row.owner_token == lease.token
                and row.expires_at > self._clock()
            )
        finally:
            session.close()

    def _try_acquire(self, key: str, token: str, now: float) -> bool:
        session = self._session_factory()
        try:
            row = session.get(ResourceLockORM, key)
            if row is None:
                session.add(
                    ResourceLockORM(
                        resource_key=key,
                        owner_token=token,
                        acquired_at=now,
                        expires_at=now + self._ttl,
                    )
                )
                try:
                    session.commit()
                except IntegrityError:
                    # another process inserted first
                    session.rollback()
                    return False
                return True
            if row.expires_at > now:
                return False
            result = session.execute(
                update(ResourceLockORM)
                .where(
                    ResourceLockORM.resource_key == key,
                    ResourceLockORM.owner_token == row.owner_token,
                    ResourceLockORM.expires_at <= now,
                )
                .values(owner_token=token, acquired_at=now, expires_at=now + self._ttl)
                .execution_options(synchronize_session=False)
            )
            session.commit()
            if result.rowcount == 1:
                logger.warning("Took over expired lock on resource %s", key)
                return True
            return False
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


__all__ = ["SqlAlchemyResourceLockProvider"]
