"""Services for the revision kernel (write side)."""

from revision_kernel.services.event_dispatcher import EventDispatcher
from revision_kernel.services.order_locks import OrderLockRegistry
from revision_kernel.services.repository import (
    InMemoryRevisionRepository,
    RevisionRepository,
    SqlAlchemyRevisionRepository,
)
from revision_kernel.services.revision_service import RevisionLifecycleService

__all__ = [
    "EventDispatcher",
    "InMemoryRevisionRepository",
    "OrderLockRegistry",
    "RevisionLifecycleService",
    "RevisionRepository",
    "SqlAlchemyRevisionRepository",
]
