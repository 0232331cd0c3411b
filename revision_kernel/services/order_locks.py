"""
revision_kernel.services.order_locks -- Per-order mutual exclusion.

Responsibility:
    Serialize every mutating operation against one order.  The chain
    advance precondition (current level, step pending) is read and then
    written, so two approvals on the same order must never interleave.

Architecture position:
    Kernel > Services.  Pure threading; no database row locks.

Invariants enforced:
    - One lock per order number, created on first use and never replaced.
    - Locks are non-reentrant: a transition never calls another transition
      while holding its order's lock.
    - Different orders never contend with each other.

Failure modes:
    - OrderBusyError when the lock is not acquired within the timeout.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from revision_kernel.exceptions import OrderBusyError
from revision_kernel.logging_config import get_logger

logger = get_logger("services.order_locks")


class OrderLockRegistry:
    """Hands out one non-reentrant ``threading.Lock`` per order number."""

    def __init__(self, timeout_seconds: float = 5.0):
        self._timeout = timeout_seconds
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    def _lock_for(self, order_number: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(order_number)
            if lock is None:
                lock = threading.Lock()
                self._locks[order_number] = lock
            return lock

    @contextmanager
    def hold(self, order_number: str) -> Iterator[None]:
        """Hold the order's lock for the duration of the block.

        Raises:
            OrderBusyError: lock not acquired within the timeout.
        """
        lock = self._lock_for(order_number)
        if not lock.acquire(timeout=self._timeout):
            logger.warning(
                "order_lock_timeout",
                extra={"order_number": order_number, "timeout_seconds": self._timeout},
            )
            raise OrderBusyError(order_number, self._timeout)
        try:
            yield
        finally:
            lock.release()

    def is_locked(self, order_number: str) -> bool:
        return self._lock_for(order_number).locked()
