"""
Notification dispatcher — decouples lifecycle events from delivery.

The queue manager hands events to ``notify``, which only enqueues them
onto an ``asyncio.Queue``. Worker tasks deliver through the injected
channel with a per-delivery timeout. A failed delivery is logged and
recorded as a ``notification_failed`` history entry; it never reaches the
operation that produced the event, and the dispatcher does not retry.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Protocol

from p2p_queue.config import settings
from p2p_queue.models.history import HistoryEntry, HistoryEventType
from p2p_queue.models.match import Match
from p2p_queue.models.queue_item import QueueItem

logger = logging.getLogger(__name__)


class NotificationType(str, enum.Enum):
    ITEM_ADDED = "item_added"
    MATCH_PROPOSED = "match_proposed"
    MATCH_APPROVED = "match_approved"
    MATCH_REJECTED = "match_rejected"
    ITEM_CANCELLED = "item_cancelled"
    MATCH_COMPLETED = "match_completed"


@dataclass(frozen=True)
class NotificationEvent:
    """One outbound notification, addressed to the owner of ``item``."""

    type: NotificationType
    item: QueueItem
    match: Match | None = None
    recipient_ref: str | None = None

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "item": self.item.snapshot(),
            "match": self.match.snapshot() if self.match else None,
            "recipient_ref": self.recipient_ref,
        }


class NotificationChannel(Protocol):
    async def notify(self, event: NotificationEvent) -> None:
        """Deliver *event*; raise on failure."""
        ...


class NotificationDispatcher:
    """Bounded work queue plus a small pool of delivery workers."""

    def __init__(
        self,
        channel: NotificationChannel,
        store,
        queue_size: int = settings.NOTIFICATION_QUEUE_SIZE,
        workers: int = settings.NOTIFICATION_WORKERS,
        timeout: float = settings.NOTIFICATION_TIMEOUT_SECONDS,
    ):
        self.channel = channel
        self.store = store
        self.timeout = timeout
        self._worker_count = max(workers, 1)
        self._queue: asyncio.Queue[NotificationEvent] = asyncio.Queue(maxsize=queue_size)
        self._workers: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    # ── Producer side ───────────────────────────────────────────────────

    async def notify(self, event: NotificationEvent) -> None:
        """Enqueue *event* without waiting for delivery."""
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(
                "Notification queue full, dropping %s for item %s",
                event.type.value, event.item.id,
            )
            await self._record_failure(event, "notification queue full")

    # ── Lifecycle ───────────────────────────────────────────────────────

    async def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._run_worker(), name=f"notification-worker-{i}")
            for i in range(self._worker_count)
        ]
        logger.info("Notification dispatcher started with %d workers", self._worker_count)

    async def drain(self) -> None:
        """Wait until every queued event has been handled."""
        await self._queue.join()

    async def stop(self, drain: bool = True) -> None:
        if drain and self._workers:
            await self.drain()
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Notification dispatcher stopped")

    # ── Delivery ────────────────────────────────────────────────────────

    async def _run_worker(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._deliver(event)
            finally:
                self._queue.task_done()

    async def _deliver(self, event: NotificationEvent) -> None:
        try:
            await asyncio.wait_for(self.channel.notify(event), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Notification %s for item %s timed out after %.1fs",
                event.type.value, event.item.id, self.timeout,
            )
            await self._record_failure(event, f"timed out after {self.timeout}s")
        except Exception as exc:
            logger.error(
                "Notification %s for item %s failed: %s",
                event.type.value, event.item.id, exc,
            )
            await self._record_failure(event, str(exc) or exc.__class__.__name__)
        else:
            logger.debug("Delivered %s for item %s", event.type.value, event.item.id)

    async def _record_failure(self, event: NotificationEvent, error: str) -> None:
        entry = HistoryEntry(
            event_type=HistoryEventType.NOTIFICATION_FAILED,
            item_id=event.item.id,
            match_id=event.match.id if event.match else None,
            payload={
                "notification_type": event.type.value,
                "recipient_ref": event.recipient_ref,
                "error": error,
            },
        )
        try:
            await self.store.append_history(entry)
        except Exception:
            logger.exception("Could not record notification failure for item %s", event.item.id)
