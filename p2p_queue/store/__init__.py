"""Queue store backends and the factory that picks one from settings."""

import logging

from p2p_queue.store.base import ItemFilter, QueueStore
from p2p_queue.store.memory import MemoryQueueStore

logger = logging.getLogger(__name__)


def build_store(settings) -> QueueStore:
    """Return the backend named by ``settings.STORE_BACKEND``."""
    backend = settings.STORE_BACKEND.lower()
    if backend == "memory":
        logger.info("Using in-memory queue store")
        return MemoryQueueStore()
    if backend == "sql":
        # Imported lazily so the memory backend never builds an engine
        from p2p_queue.database import get_session_factory
        from p2p_queue.store.sql import SqlQueueStore

        logger.info("Using SQL queue store")
        return SqlQueueStore(get_session_factory())
    raise ValueError(f"Unknown STORE_BACKEND: {settings.STORE_BACKEND!r}")


__all__ = ["ItemFilter", "QueueStore", "MemoryQueueStore", "build_store"]
