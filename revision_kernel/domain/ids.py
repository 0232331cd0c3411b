"""
Identifier generation for revisions, changes, chains and audit entries.

Ids are produced by an injected generator so tests can assert on exact
values.  ``UUIDIdGenerator`` is the production default.
"""

import itertools
import threading
from abc import ABC, abstractmethod
from uuid import uuid4


class IdGenerator(ABC):
    """Source of unique string identifiers."""

    @abstractmethod
    def new_id(self) -> str:
        ...


class UUIDIdGenerator(IdGenerator):
    """Random UUID4 identifiers."""

    def new_id(self) -> str:
        return str(uuid4())


class SequentialIdGenerator(IdGenerator):
    """
    Monotonic counter identifiers (``"id-1"``, ``"id-2"``, ...).

    Thread-safe so concurrent tests against different orders never hand out
    the same id twice.
    """

    def __init__(self, prefix: str = "id", start: int = 1):
        self._prefix = prefix
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def new_id(self) -> str:
        with self._lock:
            return f"{self._prefix}-{next(self._counter)}"
