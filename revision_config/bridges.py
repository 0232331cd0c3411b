"""
Config -> Kernel Bridges.

Builds kernel services from a ``RevisionConfig``.  Lives in revision_config
(the producer) because the kernel must NEVER import revision_config.

Usage:
    from revision_config.bridges import build_revision_service

    config = load_revision_config("config/purchase_orders.yaml")
    service = build_revision_service(config, repository)
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from revision_config.schema import OrderKind, RevisionConfig
from revision_kernel.domain.clock import Clock
from revision_kernel.domain.events import EventPublisher
from revision_kernel.domain.ids import IdGenerator
from revision_kernel.logging_config import get_logger
from revision_kernel.services.event_dispatcher import EventDispatcher
from revision_kernel.services.order_locks import OrderLockRegistry
from revision_kernel.services.repository import RevisionRepository
from revision_kernel.services.revision_service import (
    NOTIFY_CUSTOMER_TITLE,
    NOTIFY_SUPPLIER_TITLE,
    RevisionLifecycleService,
)

logger = get_logger("config.bridges")


def notification_title(config: RevisionConfig) -> str | None:
    """Title of the counterparty notification issue, or None if disabled."""
    if not config.raise_notification_issue:
        return None
    if config.order_kind == OrderKind.SALES:
        return NOTIFY_CUSTOMER_TITLE
    return NOTIFY_SUPPLIER_TITLE


def build_event_dispatcher(
    config: RevisionConfig,
    publisher: EventPublisher | None,
) -> EventDispatcher:
    executor = None
    if config.dispatch_events_async:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="revision-events")
    return EventDispatcher(publisher, executor)


def build_revision_service(
    config: RevisionConfig,
    repository: RevisionRepository | None = None,
    *,
    clock: Clock | None = None,
    id_generator: IdGenerator | None = None,
    publisher: EventPublisher | None = None,
) -> RevisionLifecycleService:
    """Wire a ``RevisionLifecycleService`` from configuration."""
    service = RevisionLifecycleService(
        repository,
        config.approvers,
        config.cost_threshold,
        clock=clock,
        id_generator=id_generator,
        locks=OrderLockRegistry(config.lock_timeout_seconds),
        dispatcher=build_event_dispatcher(config, publisher),
        notification_issue_title=notification_title(config),
    )
    logger.info(
        "revision_service_built",
        extra={
            "order_kind": config.order_kind.value,
            "approver_count": len(config.approvers),
            "async_events": config.dispatch_events_async,
        },
    )
    return service
