"""Notification and audit sinks fed by the cron runner."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from loguru import logger

from clawcron.core.cron.types import AuditEntry, Notification

if TYPE_CHECKING:
    from clawcron.memory.store import CronStore


class NotificationSink(Protocol):
    def emit(self, notification: Notification) -> None: ...


class AuditSink(Protocol):
    def record(self, entry: AuditEntry) -> None: ...


class StoreNotificationSink:
    """Persist notifications so clients can poll ``/notifications``."""

    def __init__(self, store: CronStore):
        self.store = store

    def emit(self, notification: Notification) -> None:
        self.store.add_notification(notification)
        logger.debug(f"Notification {notification.type}: {notification.title}")


class StoreAuditSink:
    def __init__(self, store: CronStore):
        self.store = store

    def record(self, entry: AuditEntry) -> None:
        self.store.add_audit_entry(entry)


class NullSink:
    """Discards everything. Used when a runner is built without sinks."""

    def emit(self, notification: Notification) -> None:
        pass

    def record(self, entry: AuditEntry) -> None:
        pass
