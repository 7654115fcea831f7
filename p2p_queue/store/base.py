"""
Queue store contract.

The queue manager only ever talks to a ``QueueStore``; backends decide
how records are persisted. Every write is version-checked: a record is
written only if its stored ``version`` still equals the version the
caller read, otherwise ``ConflictError`` is raised and nothing from that
unit of work becomes visible.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Protocol

from p2p_queue.core.errors import ConflictError
from p2p_queue.models.history import HistoryEntry
from p2p_queue.models.match import Match, MatchState
from p2p_queue.models.queue_item import (
    ACTIVE_STATES,
    ItemKind,
    ItemState,
    PaymentType,
    QueueItem,
)


@dataclass(frozen=True)
class ItemFilter:
    """Optional criteria for listing queue items; ``None`` means any."""

    kind: ItemKind | None = None
    payment_type: PaymentType | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    state: ItemState | None = None
    customer_id: str | None = None

    def matches(self, item: QueueItem) -> bool:
        if self.kind is not None and item.kind != self.kind:
            return False
        if self.payment_type is not None and item.payment_type != self.payment_type:
            return False
        if self.min_amount is not None and item.amount < self.min_amount:
            return False
        if self.max_amount is not None and item.amount > self.max_amount:
            return False
        if self.state is not None and item.state != self.state:
            return False
        if self.customer_id is not None and item.customer_id != self.customer_id:
            return False
        return True


def queue_order(item: QueueItem) -> tuple:
    """Sort key: highest priority first, then oldest first."""
    return (-item.priority, item.enqueued_at, item.id)


def check_version(entity: str, entity_id: str, stored_version: int, expected: int) -> None:
    """Raise ConflictError when a write was based on a stale read."""
    if stored_version != expected:
        raise ConflictError(
            f"{entity} {entity_id} changed concurrently "
            f"(expected version {expected}, found {stored_version})"
        )


def is_active_for(kind: ItemKind, item_filter: ItemFilter | None):
    """Predicate used by ``list_active`` in every backend."""
    def _pred(item: QueueItem) -> bool:
        if item.kind != kind or item.state not in ACTIVE_STATES:
            return False
        return item_filter is None or item_filter.matches(item)
    return _pred


class QueueStore(Protocol):
    async def put(self, item: QueueItem) -> QueueItem:
        """Insert or version-checked update of a single item."""
        ...

    async def get(self, item_id: str) -> QueueItem:
        ...

    async def list_active(
        self, kind: ItemKind, item_filter: ItemFilter | None = None,
    ) -> list[QueueItem]:
        ...

    async def list_items(self, item_filter: ItemFilter | None = None) -> list[QueueItem]:
        ...

    async def put_match(self, match: Match) -> Match:
        ...

    async def get_match(self, match_id: str) -> Match:
        ...

    async def list_matches(self, state: MatchState | None = None) -> list[Match]:
        """Highest score first; ties by creation time."""
        ...

    async def append_history(self, entry: HistoryEntry) -> None:
        ...

    async def list_history(
        self, item_id: str | None = None, match_id: str | None = None,
    ) -> list[HistoryEntry]:
        ...

    async def commit(
        self,
        items: Iterable[QueueItem] = (),
        matches: Iterable[Match] = (),
        history: Iterable[HistoryEntry] = (),
    ) -> tuple[list[QueueItem], list[Match]]:
        """
        Atomically write items and matches and append history.

        Returns the stored copies (with bumped versions) in input order.
        """
        ...
