import threading
import time

import pytest

from core.exceptions import LockTimeoutError
from core.services.recompute import InProcessResourceLocks


def test_acquire_and_release():
    locks = InProcessResourceLocks(ttl_seconds=30)

    lease = locks.acquire("r-1", timeout=1)

    assert locks.is_held(lease)
    assert locks.release(lease) is True
    assert not locks.is_held(lease)
    assert locks.release(lease) is False


def test_held_context_releases_on_error():
    locks = InProcessResourceLocks(ttl_seconds=30)

    with pytest.raises(RuntimeError):
        with locks.held("r-1", 1) as lease:
            raise RuntimeError("boom")

    assert not locks.is_held(lease)
    assert locks.is_held(locks.acquire("r-1", timeout=0.1))


def test_different_resources_do_not_contend():
    locks = InProcessResourceLocks(ttl_seconds=30)
    locks.acquire("r-1", timeout=1)

    other = locks.acquire("r-2", timeout=0.1)

    assert locks.is_held(other)


def test_waiters_are_served_in_reservation_order():
    locks = InProcessResourceLocks(ttl_seconds=30)
    holder = locks.acquire("r-1", timeout=1)
    tickets = [(name, locks.reserve("r-1")) for name in ("first", "second", "third")]
    order: list[str] = []

    def run(name, ticket):
        lease = locks.wait(ticket, timeout=5)
        order.append(name)
        locks.release(lease)

    # start in reverse so thread start order cannot explain the result
    threads = [threading.Thread(target=run, args=item) for item in reversed(tickets)]
    for thread in threads:
        thread.start()
    time.sleep(0.05)
    locks.release(holder)
    for thread in threads:
        thread.join(timeout=5)

    assert order == ["first", "second", "third"]


def test_timeout_leaves_the_queue():
    locks = InProcessResourceLocks(ttl_seconds=30)
    holder = locks.acquire("r-1", timeout=1)

    with pytest.raises(LockTimeoutError) as exc:
        locks.acquire("r-1", timeout=0.05)

    assert exc.value.code == "LOCK_TIMEOUT"
    assert locks.waiting("r-1") == 0
    locks.release(holder)
    assert locks.is_held(locks.acquire("r-1", timeout=0.1))


def test_expired_lease_is_taken_over():
    locks = InProcessResourceLocks(ttl_seconds=0.05)
    stale = locks.acquire("r-1", timeout=1)

    fresh = locks.acquire("r-1", timeout=1)

    assert locks.is_held(fresh)
    assert not locks.is_held(stale)
    assert locks.release(stale) is False
    assert locks.is_held(fresh)


def test_lease_expiry_follows_the_clock():
    now = [100.0]
    locks = InProcessResourceLocks(ttl_seconds=10, clock=lambda: now[0])
    lease = locks.acquire("r-1", timeout=0)

    assert lease.expires_at == pytest.approx(110.0)
    now[0] = 109.0
    assert locks.is_held(lease)
    now[0] = 110.0
    assert not locks.is_held(lease)


def test_cancelled_ticket_does_not_block_the_line():
    locks = InProcessResourceLocks(ttl_seconds=30)
    abandoned = locks.reserve("r-1")
    waiting = locks.reserve("r-1")

    locks.cancel(abandoned)
    lease = locks.wait(waiting, timeout=0.1)

    assert locks.is_held(lease)
    with pytest.raises(LockTimeoutError) as exc:
        locks.wait(abandoned, timeout=0.1)
    assert exc.value.code == "LOCK_RESERVATION_LOST"
