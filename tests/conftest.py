"""
Shared test fixtures for the P2P queue engine.

Provides an in-memory store, a recording notification channel, a started
dispatcher, the queue manager/reporter wired to them, and an async HTTP
client whose service dependencies point at those instances.
"""

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from p2p_queue.api.deps import get_manager, get_reporter
from p2p_queue.matching_engine.manager import EnqueueRequest, QueueManager
from p2p_queue.matching_engine.reporter import QueueReporter
from p2p_queue.models.queue_item import ItemKind, PaymentType, QueueItem, utcnow
from p2p_queue.notifications.dispatcher import NotificationDispatcher
from p2p_queue.store.memory import MemoryQueueStore


# --- Notification doubles ---


class RecordingChannel:
    """Channel that remembers every event; optionally fails or stalls."""

    def __init__(self, fail_with: Exception | None = None, delay: float = 0.0):
        self.events = []
        self.fail_with = fail_with
        self.delay = delay

    async def notify(self, event) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        self.events.append(event)

    def types(self) -> list[str]:
        return [e.type.value for e in self.events]


@pytest.fixture
def channel():
    return RecordingChannel()


# --- Store / services ---


@pytest.fixture
def store():
    return MemoryQueueStore()


@pytest_asyncio.fixture
async def dispatcher(channel, store):
    """Started dispatcher delivering to the recording channel."""
    d = NotificationDispatcher(channel, store, queue_size=100, workers=1, timeout=1.0)
    await d.start()
    yield d
    await d.stop()


@pytest.fixture
def manager(store, dispatcher):
    return QueueManager(store, dispatcher)


@pytest.fixture
def reporter(store):
    return QueueReporter(store)


# --- Factories ---


_customer_seq = iter(range(1, 1_000_000))


def _request(kind, amount, payment_type="bank_transfer", customer_id=None, **overrides):
    """Build an EnqueueRequest; each call gets a distinct customer by default."""
    return EnqueueRequest(
        kind=kind,
        customer_id=customer_id or f"CUST-{next(_customer_seq):04d}",
        amount=Decimal(str(amount)),
        payment_type=payment_type,
        **overrides,
    )


@pytest.fixture
def make_request():
    """Factory fixture: make_request("withdrawal", 500, "zelle")."""
    return _request


def _item(kind, amount, payment_type="bank_transfer", customer_id=None, minutes_ago=0, **overrides):
    """Build a pending QueueItem directly (bypasses the manager)."""
    return QueueItem(
        kind=ItemKind(kind),
        customer_id=customer_id or f"CUST-{next(_customer_seq):04d}",
        amount=Decimal(str(amount)),
        payment_type=PaymentType(payment_type),
        enqueued_at=utcnow() - timedelta(minutes=minutes_ago),
        **overrides,
    )


@pytest.fixture
def make_item():
    return _item


# --- HTTP client ---


@pytest_asyncio.fixture
async def client(manager, reporter):
    """
    Async HTTP test client with get_manager and get_reporter overridden
    to use the test store.
    """
    from p2p_queue.main import app

    app.dependency_overrides[get_manager] = lambda: manager
    app.dependency_overrides[get_reporter] = lambda: reporter

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
