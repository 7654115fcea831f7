"""
SQL queue store (async SQLAlchemy).

Each ``commit`` runs in a single transaction. Existing rows are written
with ``UPDATE ... WHERE id = :id AND version = :expected``; zero affected
rows means another writer got there first, and the whole transaction is
rolled back with ``ConflictError``.
"""

import logging
from dataclasses import replace
from typing import Iterable

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from p2p_queue.core.errors import ConflictError, NotFoundError
from p2p_queue.models.history import HistoryEntry
from p2p_queue.models.match import Match, MatchState
from p2p_queue.models.queue_item import ACTIVE_STATES, ItemKind, QueueItem
from p2p_queue.store.base import ItemFilter
from p2p_queue.store.tables import HistoryRow, MatchRow, QueueItemRow

logger = logging.getLogger(__name__)


def _filter_clauses(item_filter: ItemFilter | None) -> list:
    if item_filter is None:
        return []
    clauses = []
    if item_filter.kind is not None:
        clauses.append(QueueItemRow.kind == item_filter.kind)
    if item_filter.payment_type is not None:
        clauses.append(QueueItemRow.payment_type == item_filter.payment_type)
    if item_filter.min_amount is not None:
        clauses.append(QueueItemRow.amount >= item_filter.min_amount)
    if item_filter.max_amount is not None:
        clauses.append(QueueItemRow.amount <= item_filter.max_amount)
    if item_filter.state is not None:
        clauses.append(QueueItemRow.state == item_filter.state)
    if item_filter.customer_id is not None:
        clauses.append(QueueItemRow.customer_id == item_filter.customer_id)
    return clauses


_QUEUE_ORDER = (
    QueueItemRow.priority.desc(),
    QueueItemRow.enqueued_at.asc(),
    QueueItemRow.id.asc(),
)


class SqlQueueStore:
    """``QueueStore`` on top of an ``async_sessionmaker``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # ── items ───────────────────────────────────────────────────────────

    async def put(self, item: QueueItem) -> QueueItem:
        stored, _ = await self.commit(items=[item])
        return stored[0]

    async def get(self, item_id: str) -> QueueItem:
        async with self._session_factory() as session:
            row = await session.get(QueueItemRow, item_id)
            if row is None:
                raise NotFoundError("Queue item", item_id)
            return row.to_model()

    async def list_active(
        self, kind: ItemKind, item_filter: ItemFilter | None = None,
    ) -> list[QueueItem]:
        stmt = (
            select(QueueItemRow)
            .where(
                QueueItemRow.kind == kind,
                QueueItemRow.state.in_(list(ACTIVE_STATES)),
                *_filter_clauses(item_filter),
            )
            .order_by(*_QUEUE_ORDER)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [row.to_model() for row in result.scalars()]

    async def list_items(self, item_filter: ItemFilter | None = None) -> list[QueueItem]:
        stmt = (
            select(QueueItemRow)
            .where(*_filter_clauses(item_filter))
            .order_by(*_QUEUE_ORDER)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [row.to_model() for row in result.scalars()]

    # ── matches ─────────────────────────────────────────────────────────

    async def put_match(self, match: Match) -> Match:
        _, stored = await self.commit(matches=[match])
        return stored[0]

    async def get_match(self, match_id: str) -> Match:
        async with self._session_factory() as session:
            row = await session.get(MatchRow, match_id)
            if row is None:
                raise NotFoundError("Match", match_id)
            return row.to_model()

    async def list_matches(self, state: MatchState | None = None) -> list[Match]:
        stmt = select(MatchRow).order_by(
            MatchRow.score.desc(), MatchRow.created_at, MatchRow.id,
        )
        if state is not None:
            stmt = stmt.where(MatchRow.state == state)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [row.to_model() for row in result.scalars()]

    # ── history ─────────────────────────────────────────────────────────

    async def append_history(self, entry: HistoryEntry) -> None:
        await self.commit(history=[entry])

    async def list_history(
        self, item_id: str | None = None, match_id: str | None = None,
    ) -> list[HistoryEntry]:
        stmt = select(HistoryRow).order_by(HistoryRow.timestamp, HistoryRow.seq)
        if item_id is not None:
            stmt = stmt.where(HistoryRow.item_id == item_id)
        if match_id is not None:
            stmt = stmt.where(HistoryRow.match_id == match_id)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [row.to_model() for row in result.scalars()]

    # ── unit of work ────────────────────────────────────────────────────

    async def commit(
        self,
        items: Iterable[QueueItem] = (),
        matches: Iterable[Match] = (),
        history: Iterable[HistoryEntry] = (),
    ) -> tuple[list[QueueItem], list[Match]]:
        items = list(items)
        matches = list(matches)
        history = list(history)

        async with self._session_factory() as session:
            async with session.begin():
                for item in items:
                    await self._write(
                        session, QueueItemRow, "Queue item",
                        item.id, item.version, QueueItemRow.values_from(item),
                    )
                for match in matches:
                    await self._write(
                        session, MatchRow, "Match",
                        match.id, match.version, MatchRow.values_from(match),
                    )
                session.add_all([HistoryRow.from_model(e) for e in history])

        stored_items = [_bumped(i) for i in items]
        stored_matches = [_bumped(m) for m in matches]
        return stored_items, stored_matches

    @staticmethod
    async def _write(session, table, entity: str, entity_id: str, version: int, values: dict):
        if version == 0:
            try:
                await session.execute(insert(table).values(version=1, **values))
            except IntegrityError as exc:
                raise ConflictError(f"{entity} {entity_id} already exists") from exc
            return

        result = await session.execute(
            update(table)
            .where(table.id == entity_id, table.version == version)
            .values(version=version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.info("Version conflict on %s %s (expected v%d)", entity, entity_id, version)
            raise ConflictError(
                f"{entity} {entity_id} changed concurrently (expected version {version})"
            )


def _bumped(record):
    return replace(record, version=record.version + 1)
