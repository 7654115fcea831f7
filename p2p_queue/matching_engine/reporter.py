"""
Queue reporting — read-only filtering, aggregate stats and CSV export.

Feeds the operator dashboard and audit exports. Nothing here writes to
the store.
"""

import csv
import io
from datetime import datetime

from p2p_queue.models.match import ACTIVE_MATCH_STATES, Match, MatchState
from p2p_queue.models.queue_item import ItemKind, ItemState, QueueItem, utcnow
from p2p_queue.store.base import ItemFilter, QueueStore

EXPORT_COLUMNS = [
    "id",
    "kind",
    "customer_id",
    "amount",
    "payment_type",
    "priority",
    "state",
    "enqueued_at",
    "updated_at",
    "match_id",
    "channel_ref",
    "notes",
]


class QueueReporter:
    def __init__(self, store: QueueStore):
        self.store = store

    async def filter_items(self, item_filter: ItemFilter | None = None) -> list[QueueItem]:
        return await self.store.list_items(item_filter)

    async def list_matches(self, state: MatchState | None = None) -> list[Match]:
        return await self.store.list_matches(state)

    async def get_stats(self, now: datetime | None = None) -> dict:
        """
        Aggregate queue metrics.

        ``average_wait_time`` is the mean number of seconds pending items
        have waited so far; ``success_rate`` is completed over all
        terminal items (0.0 when nothing has finished yet).
        """
        now = now or utcnow()
        items = await self.store.list_items()
        matches = await self.store.list_matches()

        pending = [i for i in items if i.state == ItemState.PENDING]
        pending_withdrawals = sum(1 for i in pending if i.kind == ItemKind.WITHDRAWAL)
        pending_deposits = len(pending) - pending_withdrawals

        if pending:
            total_wait = sum((now - i.enqueued_at).total_seconds() for i in pending)
            average_wait = max(total_wait, 0.0) / len(pending)
        else:
            average_wait = 0.0

        completed = sum(1 for i in items if i.state == ItemState.COMPLETED)
        terminal = sum(1 for i in items if i.is_terminal)
        success_rate = completed / terminal if terminal else 0.0

        return {
            "total_items": len(items),
            "pending_withdrawals": pending_withdrawals,
            "pending_deposits": pending_deposits,
            "matched_pairs": sum(1 for m in matches if m.state in ACTIVE_MATCH_STATES),
            "average_wait_time": round(average_wait, 3),
            "success_rate": round(success_rate, 4),
            "last_updated": now.isoformat(),
        }

    async def export_csv(self, item_filter: ItemFilter | None = None) -> str:
        """Render the filtered items as CSV (header row included)."""
        items = await self.store.list_items(item_filter)

        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=EXPORT_COLUMNS)
        writer.writeheader()
        for item in items:
            writer.writerow({
                "id": item.id,
                "kind": item.kind.value,
                "customer_id": item.customer_id,
                "amount": str(item.amount),
                "payment_type": item.payment_type.value,
                "priority": item.priority,
                "state": item.state.value,
                "enqueued_at": item.enqueued_at.isoformat(),
                "updated_at": item.updated_at.isoformat(),
                "match_id": item.match_id or "",
                "channel_ref": item.channel_ref or "",
                "notes": item.notes or "",
            })
        return buf.getvalue()
