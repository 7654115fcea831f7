"""
In-process queue store.

Keeps items, matches and history in dicts guarded by a single
``asyncio.Lock``. Callers always receive copies, so nothing outside the
store can mutate committed state.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Iterable

from p2p_queue.core.errors import NotFoundError
from p2p_queue.models.history import HistoryEntry
from p2p_queue.models.match import Match, MatchState
from p2p_queue.models.queue_item import ItemKind, QueueItem
from p2p_queue.store.base import ItemFilter, check_version, is_active_for, queue_order


class MemoryQueueStore:
    """Dict-backed ``QueueStore`` for development and tests."""

    def __init__(self):
        self._items: dict[str, QueueItem] = {}
        self._matches: dict[str, Match] = {}
        self._history: list[HistoryEntry] = []
        self._lock = asyncio.Lock()

    # ── items ───────────────────────────────────────────────────────────

    async def put(self, item: QueueItem) -> QueueItem:
        stored, _ = await self.commit(items=[item])
        return stored[0]

    async def get(self, item_id: str) -> QueueItem:
        async with self._lock:
            item = self._items.get(item_id)
            if item is None:
                raise NotFoundError("Queue item", item_id)
            return replace(item)

    async def list_active(
        self, kind: ItemKind, item_filter: ItemFilter | None = None,
    ) -> list[QueueItem]:
        pred = is_active_for(kind, item_filter)
        async with self._lock:
            items = [replace(i) for i in self._items.values() if pred(i)]
        return sorted(items, key=queue_order)

    async def list_items(self, item_filter: ItemFilter | None = None) -> list[QueueItem]:
        async with self._lock:
            items = [
                replace(i) for i in self._items.values()
                if item_filter is None or item_filter.matches(i)
            ]
        return sorted(items, key=queue_order)

    # ── matches ─────────────────────────────────────────────────────────

    async def put_match(self, match: Match) -> Match:
        _, stored = await self.commit(matches=[match])
        return stored[0]

    async def get_match(self, match_id: str) -> Match:
        async with self._lock:
            match = self._matches.get(match_id)
            if match is None:
                raise NotFoundError("Match", match_id)
            return replace(match)

    async def list_matches(self, state: MatchState | None = None) -> list[Match]:
        async with self._lock:
            matches = [
                replace(m) for m in self._matches.values()
                if state is None or m.state == state
            ]
        # Best proposals first, oldest first within a score
        return sorted(matches, key=lambda m: (-m.score, m.created_at, m.id))

    # ── history ─────────────────────────────────────────────────────────

    async def append_history(self, entry: HistoryEntry) -> None:
        await self.commit(history=[entry])

    async def list_history(
        self, item_id: str | None = None, match_id: str | None = None,
    ) -> list[HistoryEntry]:
        async with self._lock:
            entries = [
                e for e in self._history
                if (item_id is None or e.item_id == item_id)
                and (match_id is None or e.match_id == match_id)
            ]
        # sorted() is stable, so same-timestamp entries keep append order
        return sorted(entries, key=lambda e: e.timestamp)

    # ── unit of work ────────────────────────────────────────────────────

    async def commit(
        self,
        items: Iterable[QueueItem] = (),
        matches: Iterable[Match] = (),
        history: Iterable[HistoryEntry] = (),
    ) -> tuple[list[QueueItem], list[Match]]:
        items = list(items)
        matches = list(matches)

        async with self._lock:
            # Validate everything before touching any record
            for item in items:
                current = self._items.get(item.id)
                check_version(
                    "Queue item", item.id,
                    current.version if current else 0, item.version,
                )
            for match in matches:
                current = self._matches.get(match.id)
                check_version(
                    "Match", match.id,
                    current.version if current else 0, match.version,
                )

            stored_items = []
            for item in items:
                stored = replace(item, version=item.version + 1)
                self._items[item.id] = stored
                stored_items.append(replace(stored))

            stored_matches = []
            for match in matches:
                stored = replace(match, version=match.version + 1)
                self._matches[match.id] = stored
                stored_matches.append(replace(stored))

            self._history.extend(history)

        return stored_items, stored_matches
