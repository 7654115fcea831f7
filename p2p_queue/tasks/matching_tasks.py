"""
Matching sweep Celery task.

Re-attempts matching for every pending item on the schedule defined by
MATCH_SWEEP_INTERVAL_SECONDS. Picks up items whose matching attempt lost
a version race, and pairs that became viable as items aged.
"""

import asyncio
import logging

from p2p_queue.config import settings
from p2p_queue.database import dispose_engine
from p2p_queue.matching_engine.manager import QueueManager
from p2p_queue.notifications.dispatcher import NotificationDispatcher
from p2p_queue.services.notification_service import get_notification_channel
from p2p_queue.store import build_store
from p2p_queue.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


async def sweep_pending() -> dict:
    store = build_store(settings)
    dispatcher = NotificationDispatcher(get_notification_channel(), store)
    await dispatcher.start()
    try:
        manager = QueueManager(store, dispatcher)
        matches = await manager.rematch_pending()
    finally:
        await dispatcher.stop()
        if settings.STORE_BACKEND == "sql":
            # Engine connections are bound to this task's event loop
            await dispose_engine()
    return {"proposed": len(matches), "match_ids": [m.id for m in matches]}


@celery_app.task(name="p2p_queue.tasks.matching_tasks.run_matching_sweep")
def run_matching_sweep():
    """
    Execute a matching sweep.

    Celery tasks are synchronous, so we run the async manager
    in an event loop.
    """
    logger.info("Starting scheduled matching sweep")
    loop = asyncio.new_event_loop()
    try:
        result = loop.run_until_complete(sweep_pending())
        logger.info("Matching sweep completed: %d matches proposed", result["proposed"])
        return result
    except Exception:
        logger.exception("Matching sweep failed")
        raise
    finally:
        loop.close()
