"""
Notification Celery tasks — background Telegram delivery with retries.

``CeleryNotificationChannel`` lets the in-process dispatcher hand events
to a worker. Retrying is the worker's job: the task backs off and retries
on transport errors up to NOTIFICATION_TASK_MAX_RETRIES times. Once the
retries run out the failure is appended to the queue history as
``notification_failed``.
"""

import asyncio
import logging

import httpx
from celery import Task

from p2p_queue.config import settings
from p2p_queue.database import dispose_engine
from p2p_queue.models.history import HistoryEntry, HistoryEventType
from p2p_queue.services.notification_service import (
    NotificationDeliveryError,
    TelegramNotificationService,
)
from p2p_queue.store import build_store
from p2p_queue.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


async def record_delivery_failure(payload: dict, error: str) -> HistoryEntry:
    """Append a ``notification_failed`` entry for a payload that was never delivered."""
    match = payload.get("match") or {}
    entry = HistoryEntry(
        event_type=HistoryEventType.NOTIFICATION_FAILED,
        item_id=payload["item"]["id"],
        match_id=match.get("id"),
        payload={
            "notification_type": payload["type"],
            "recipient_ref": payload.get("recipient_ref"),
            "error": error,
        },
    )
    store = build_store(settings)
    try:
        await store.append_history(entry)
    finally:
        if settings.STORE_BACKEND == "sql":
            await dispose_engine()
    return entry


class NotificationTask(Task):
    """Records deliveries that failed for good in the queue history."""

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        payload = args[0] if args else kwargs.get("payload")
        if not payload:
            return
        logger.error(
            "Notification %s for item %s failed after %d attempts: %s",
            payload["type"], payload["item"]["id"], self.request.retries + 1, exc,
        )
        loop = asyncio.new_event_loop()
        try:
            loop.run_until_complete(
                record_delivery_failure(payload, str(exc) or exc.__class__.__name__)
            )
        except Exception:
            logger.exception("Could not record notification failure for item %s", payload["item"]["id"])
        finally:
            loop.close()


@celery_app.task(
    name="p2p_queue.tasks.notification_tasks.deliver_notification",
    base=NotificationTask,
    autoretry_for=(NotificationDeliveryError, httpx.HTTPError),
    retry_backoff=True,
    retry_backoff_max=300,
    max_retries=settings.NOTIFICATION_TASK_MAX_RETRIES,
)
def deliver_notification(payload: dict):
    """Send one serialized notification event through Telegram."""
    loop = asyncio.new_event_loop()
    try:
        result = loop.run_until_complete(TelegramNotificationService().deliver(payload))
        logger.info("Notification %s delivered for item %s", payload["type"], payload["item"]["id"])
        return result
    finally:
        loop.close()


class CeleryNotificationChannel:
    """Queues delivery on a Celery worker instead of calling Telegram inline."""

    async def notify(self, event) -> None:
        deliver_notification.delay(event.to_dict())
        logger.debug("Queued %s notification for item %s", event.type.value, event.item.id)
