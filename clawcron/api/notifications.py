"""Notification routes — polled by clients for cron outcomes."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends

from clawcron.api.deps import get_store
from clawcron.core.cron.types import Notification
from clawcron.memory.models import (
    NotificationPosted,
    NotificationRequest,
    NotificationsResponse,
    OkResponse,
)
from clawcron.memory.store import CronStore

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationsResponse)
async def list_notifications(
    since: datetime | None = None,
    store: CronStore = Depends(get_store),
):
    """Latest notifications (max 50), optionally only those after ``since``."""
    return NotificationsResponse(notifications=store.list_notifications(since=since))


@router.post("", response_model=NotificationPosted)
async def post_notification(
    body: NotificationRequest,
    store: CronStore = Depends(get_store),
):
    data = body.model_dump(exclude_none=True)
    notification = Notification(**data)
    store.add_notification(notification)
    return NotificationPosted(notification=notification)


@router.post("/{notification_id}/read", response_model=OkResponse)
async def mark_read(notification_id: str, store: CronStore = Depends(get_store)):
    return OkResponse(ok=store.mark_notification_read(notification_id))


@router.delete("", response_model=OkResponse)
async def clear_notifications(store: CronStore = Depends(get_store)):
    store.clear_notifications()
    return OkResponse()
