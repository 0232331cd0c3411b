"""
revision_kernel.services.event_dispatcher -- Fire-and-forget event delivery.

Responsibility:
    Hand committed revision events to the configured ``EventPublisher``
    after the order lock has been released.

Architecture position:
    Kernel > Services.

Invariants enforced:
    - Dispatch happens after the state transition is stored; a publisher
      failure can never roll back or fail the transition.
    - Failures are logged with traceback and swallowed.

Failure modes:
    (none surfaced to callers)
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from concurrent.futures import Executor, Future

from revision_kernel.domain.events import EventPublisher, RevisionEvent
from revision_kernel.logging_config import get_logger

logger = get_logger("services.event_dispatcher")


class EventDispatcher:
    """
    Delivers events inline, or on ``executor`` when one is supplied.

    With an executor, ``dispatch`` returns immediately.  Futures stay in
    ``_pending`` only until they finish, so ``drain`` can wait for events
    still in flight.  ``close`` shuts the executor down.
    """

    def __init__(self, publisher: EventPublisher | None, executor: Executor | None = None):
        self._publisher = publisher
        self._executor = executor
        self._pending: set[Future] = set()
        self._pending_lock = threading.Lock()

    def dispatch(self, events: Iterable[RevisionEvent]) -> None:
        if self._publisher is None:
            return
        for event in events:
            if self._executor is None:
                self._publish_one(event)
            else:
                future = self._executor.submit(self._publish_one, event)
                with self._pending_lock:
                    self._pending.add(future)
                future.add_done_callback(self._forget)

    def drain(self, timeout: float | None = None) -> None:
        """Wait for executor-dispatched events to finish."""
        with self._pending_lock:
            pending = list(self._pending)
        for future in pending:
            future.result(timeout=timeout)

    @property
    def pending_count(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    def close(self) -> None:
        """Wait for in-flight events and shut the executor down."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)

    def _forget(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def _publish_one(self, event: RevisionEvent) -> None:
        try:
            self._publisher.publish(event)
        except Exception:
            logger.exception(
                "revision_event_publish_failed",
                extra={
                    "event_id": event.event_id,
                    "event_type": event.event_type.value,
                    "order_number": event.order_number,
                    "revision_id": event.revision_id,
                },
            )
            return
        logger.debug(
            "revision_event_published",
            extra={
                "event_id": event.event_id,
                "event_type": event.event_type.value,
                "order_number": event.order_number,
            },
        )
