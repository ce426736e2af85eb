from __future__ import annotations

import logging
from threading import Lock
from typing import Callable, Generic, Tuple, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

Subscriber = Callable[[T], None]


class Signal(Generic[T]):
    """
    Synchronous publish point for one event type.

    The subscriber list is copy-on-write so emit never holds the lock while
    callbacks run. Callbacks run in connection order; one that raises is
    logged and counted, the rest still run.
    """

    def __init__(self, name: str = "signal") -> None:
        self.name = name
        self._subscribers: Tuple[Subscriber, ...] = ()
        self._guard = Lock()

    def __repr__(self) -> str:
        return f"Signal({self.name!r}, subscribers={len(self._subscribers)})"

    def connect(self, callback: Subscriber) -> None:
        with self._guard:
            if callback not in self._subscribers:
                self._subscribers = self._subscribers + (callback,)

    def disconnect(self, callback: Subscriber) -> None:
        with self._guard:
            self._subscribers = tuple(s for s in self._subscribers if s != callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def emit(self, payload: T) -> int:
        """Returns how many subscribers raised."""
        dead: list[Subscriber] = []
        failures = 0
        for callback in self._subscribers:
            try:
                callback(payload)
            except ReferenceError:
                dead.append(callback)
            except Exception:
                failures += 1
                logger.exception("%s subscriber %r raised", self.name, callback)
        for callback in dead:
            self.disconnect(callback)
        return failures
