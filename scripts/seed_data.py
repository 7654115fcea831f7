"""
Test data seeder — populates the SQL store with sample queue items for development.

Usage:
    STORE_BACKEND=sql python scripts/seed_data.py

Creates:
  - 8 withdrawals and 8 deposits across all payment types
  - whatever matches the engine proposes while they are enqueued
  - one approved and one rejected match, so the dashboard has history

Items go through QueueManager.enqueue, so matching and history behave
exactly as they do behind the API.
"""

import asyncio
from decimal import Decimal

from p2p_queue.config import settings
from p2p_queue.core.logging import configure_logging
from p2p_queue.database import dispose_engine, init_db
from p2p_queue.matching_engine.manager import EnqueueRequest, QueueManager
from p2p_queue.models.match import MatchState
from p2p_queue.store import build_store

# ---------------------------------------------------------------------------
# Sample queue: (kind, customer, amount, payment type, priority)
# ---------------------------------------------------------------------------

SAMPLE_ITEMS: list[tuple[str, str, str, str, int]] = [
    ("withdrawal", "CUST-1001", "500.00", "bank_transfer", 1),
    ("withdrawal", "CUST-1002", "1250.00", "zelle", 1),
    ("withdrawal", "CUST-1003", "75.50", "venmo", 2),
    ("withdrawal", "CUST-1004", "3000.00", "crypto", 1),
    ("withdrawal", "CUST-1005", "220.00", "cashapp", 1),
    ("withdrawal", "CUST-1006", "980.00", "paypal", 5),
    ("withdrawal", "CUST-1007", "45.00", "apple_pay", 1),
    ("withdrawal", "CUST-1008", "610.00", "google_pay", 1),
    ("deposit", "CUST-2001", "505.00", "bank_transfer", 1),
    ("deposit", "CUST-2002", "1300.00", "zelle", 1),
    ("deposit", "CUST-2003", "80.00", "venmo", 1),
    ("deposit", "CUST-2004", "2500.00", "crypto", 1),
    ("deposit", "CUST-2005", "250.00", "cashapp", 1),
    ("deposit", "CUST-2006", "1000.00", "paypal", 1),
    ("deposit", "CUST-2007", "9000.00", "bank_transfer", 1),
    ("deposit", "CUST-2008", "40.00", "apple_pay", 1),
]


async def seed() -> None:
    if settings.STORE_BACKEND == "sql":
        await init_db()
    store = build_store(settings)
    manager = QueueManager(store)

    for kind, customer_id, amount, payment_type, priority in SAMPLE_ITEMS:
        item = await manager.enqueue(EnqueueRequest(
            kind=kind,
            customer_id=customer_id,
            amount=Decimal(amount),
            payment_type=payment_type,
            priority=priority,
            notes="seed data",
        ))
        print(f"  {item.kind.value:<10} {item.amount:>9} {item.payment_type.value:<14} -> {item.state.value}")

    proposed = await store.list_matches(MatchState.PROPOSED)
    if proposed:
        await manager.approve_match(proposed[0].id)
    if len(proposed) > 1:
        await manager.reject_match(proposed[1].id, reason="seed: customer unreachable")

    matches = await store.list_matches()
    print(f"\nSeeded {len(SAMPLE_ITEMS)} items, {len(matches)} matches.")

    if settings.STORE_BACKEND == "sql":
        await dispose_engine()


if __name__ == "__main__":
    configure_logging(settings.LOG_LEVEL)
    asyncio.run(seed())
