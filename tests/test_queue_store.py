"""
Queue store contract tests.

Every test runs against both backends: the in-process store and the SQL
store on a throwaway SQLite file.
"""

from dataclasses import replace
from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from p2p_queue.core.errors import ConflictError, NotFoundError
from p2p_queue.database import dispose_engine, init_db
from p2p_queue.models.history import HistoryEntry, HistoryEventType
from p2p_queue.models.match import Match, MatchState
from p2p_queue.models.queue_item import ItemKind, ItemState, PaymentType, utcnow
from p2p_queue.store import ItemFilter, MemoryQueueStore, build_store
from p2p_queue.store.sql import SqlQueueStore


@pytest_asyncio.fixture(params=["memory", "sql"])
async def store(request, tmp_path):
    """Overrides the conftest store so manager/dispatcher use each backend."""
    if request.param == "memory":
        yield MemoryQueueStore()
        return

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'queue.db'}")
    await init_db(engine)
    yield SqlQueueStore(async_sessionmaker(engine, expire_on_commit=False))
    await engine.dispose()


def _match(withdrawal, deposit, score=75.0, **overrides) -> Match:
    return Match(
        withdrawal_id=withdrawal.id,
        deposit_id=deposit.id,
        score=score,
        amount=withdrawal.amount,
        **overrides,
    )


# ===========================================================================
# ITEMS
# ===========================================================================


class TestItems:

    @pytest.mark.asyncio
    async def test_put_and_get(self, store, make_item):
        item = make_item("withdrawal", "1234.56", "zelle", notes="first", channel_ref="tg-1")

        stored = await store.put(item)
        loaded = await store.get(item.id)

        assert stored.version == 1
        assert loaded.version == 1
        assert loaded.kind == ItemKind.WITHDRAWAL
        assert loaded.amount == Decimal("1234.56")
        assert isinstance(loaded.amount, Decimal)
        assert loaded.payment_type == PaymentType.ZELLE
        assert loaded.notes == "first"
        assert loaded.channel_ref == "tg-1"
        assert loaded.enqueued_at == item.enqueued_at
        assert loaded.enqueued_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        with pytest.raises(NotFoundError) as exc_info:
            await store.get("missing")
        assert exc_info.value.entity_id == "missing"

    @pytest.mark.asyncio
    async def test_update_bumps_version(self, store, make_item):
        stored = await store.put(make_item("deposit", 100))

        stored.notes = "edited"
        again = await store.put(stored)

        assert again.version == 2
        assert (await store.get(stored.id)).notes == "edited"

    @pytest.mark.asyncio
    async def test_stale_write_conflicts(self, store, make_item):
        stored = await store.put(make_item("deposit", 100))
        first = await store.get(stored.id)
        second = await store.get(stored.id)

        first.transition_to(ItemState.CANCELLED)
        await store.put(first)

        second.transition_to(ItemState.MATCHED)
        with pytest.raises(ConflictError):
            await store.put(second)
        assert (await store.get(stored.id)).state == ItemState.CANCELLED

    @pytest.mark.asyncio
    async def test_duplicate_insert_conflicts(self, store, make_item):
        item = make_item("deposit", 100)
        await store.put(item)

        with pytest.raises(ConflictError):
            await store.put(replace(item, version=0))

    @pytest.mark.asyncio
    async def test_returned_copies_are_detached(self, store, make_item):
        stored = await store.put(make_item("withdrawal", 100))

        loaded = await store.get(stored.id)
        loaded.state = ItemState.COMPLETED
        loaded.notes = "scribble"

        fresh = await store.get(stored.id)
        assert fresh.state == ItemState.PENDING
        assert fresh.notes is None


class TestListing:

    @pytest.mark.asyncio
    async def test_list_active_by_kind_in_queue_order(self, store, make_item):
        old = await store.put(make_item("withdrawal", 100, minutes_ago=30))
        new = await store.put(make_item("withdrawal", 100, minutes_ago=5))
        urgent = await store.put(make_item("withdrawal", 100, minutes_ago=1, priority=5))
        await store.put(make_item("deposit", 100))
        await store.put(make_item("withdrawal", 100, state=ItemState.CANCELLED))

        active = await store.list_active(ItemKind.WITHDRAWAL)

        assert [i.id for i in active] == [urgent.id, old.id, new.id]

    @pytest.mark.asyncio
    async def test_list_active_includes_matched_and_processing(self, store, make_item):
        pending = await store.put(make_item("deposit", 100))
        matched = await store.put(make_item("deposit", 100, state=ItemState.MATCHED))
        processing = await store.put(make_item("deposit", 100, state=ItemState.PROCESSING))
        await store.put(make_item("deposit", 100, state=ItemState.COMPLETED))

        ids = {i.id for i in await store.list_active(ItemKind.DEPOSIT)}
        assert ids == {pending.id, matched.id, processing.id}

    @pytest.mark.asyncio
    async def test_list_active_with_filter(self, store, make_item):
        await store.put(make_item("deposit", 100, "zelle"))
        venmo = await store.put(make_item("deposit", 100, "venmo"))

        active = await store.list_active(
            ItemKind.DEPOSIT, ItemFilter(payment_type=PaymentType.VENMO),
        )
        assert [i.id for i in active] == [venmo.id]

    @pytest.mark.asyncio
    async def test_list_items_filters(self, store, make_item):
        small = await store.put(make_item("withdrawal", "50.00", customer_id="CUST-A"))
        mid = await store.put(make_item("withdrawal", "500.00", "crypto"))
        big = await store.put(make_item("deposit", "5000.00", state=ItemState.COMPLETED))

        async def ids(**criteria):
            return {i.id for i in await store.list_items(ItemFilter(**criteria))}

        assert await ids() == {small.id, mid.id, big.id}
        assert await ids(kind=ItemKind.WITHDRAWAL) == {small.id, mid.id}
        assert await ids(payment_type=PaymentType.CRYPTO) == {mid.id}
        assert await ids(min_amount=Decimal("100")) == {mid.id, big.id}
        assert await ids(max_amount=Decimal("500")) == {small.id, mid.id}
        assert await ids(min_amount=Decimal("100"), max_amount=Decimal("1000")) == {mid.id}
        assert await ids(state=ItemState.COMPLETED) == {big.id}
        assert await ids(customer_id="CUST-A") == {small.id}

    @pytest.mark.asyncio
    async def test_list_items_without_filter(self, store):
        assert await store.list_items() == []


# ===========================================================================
# MATCHES & UNIT OF WORK
# ===========================================================================


class TestMatches:

    @pytest.mark.asyncio
    async def test_put_get_and_list(self, store, make_item):
        w = await store.put(make_item("withdrawal", 500))
        d = await store.put(make_item("deposit", 500))

        stored = await store.put_match(_match(w, d))
        loaded = await store.get_match(stored.id)

        assert loaded.version == 1
        assert loaded.state == MatchState.PROPOSED
        assert loaded.amount == Decimal("500")
        assert loaded.created_at.tzinfo is not None
        assert [m.id for m in await store.list_matches()] == [stored.id]
        assert await store.list_matches(MatchState.APPROVED) == []

    @pytest.mark.asyncio
    async def test_list_orders_by_score_then_age(self, store, make_item):
        now = utcnow()
        pairs = [
            (await store.put(make_item("withdrawal", 500)), await store.put(make_item("deposit", 500)))
            for _ in range(3)
        ]
        weak = await store.put_match(_match(*pairs[0], score=40.0, created_at=now - timedelta(minutes=9)))
        best_new = await store.put_match(_match(*pairs[1], score=75.0, created_at=now))
        best_old = await store.put_match(_match(*pairs[2], score=75.0, created_at=now - timedelta(minutes=5)))

        assert [m.id for m in await store.list_matches()] == [best_old.id, best_new.id, weak.id]
        assert [m.id for m in await store.list_matches(MatchState.PROPOSED)] == [
            best_old.id, best_new.id, weak.id,
        ]

    @pytest.mark.asyncio
    async def test_get_missing_match(self, store):
        with pytest.raises(NotFoundError):
            await store.get_match("missing")

    @pytest.mark.asyncio
    async def test_match_transition_persisted(self, store, make_item):
        w = await store.put(make_item("withdrawal", 500))
        d = await store.put(make_item("deposit", 500))
        stored = await store.put_match(_match(w, d))

        stored.transition_to(MatchState.REJECTED, reason="nope")
        await store.put_match(stored)

        loaded = await store.get_match(stored.id)
        assert loaded.state == MatchState.REJECTED
        assert loaded.reason == "nope"
        assert loaded.resolved_at is not None


class TestCommit:

    @pytest.mark.asyncio
    async def test_commit_writes_everything(self, store, make_item):
        w = make_item("withdrawal", 500)
        d = make_item("deposit", 500)
        match = _match(w, d)
        entry = HistoryEntry(event_type=HistoryEventType.MATCH_PROPOSED, match_id=match.id)

        items, matches = await store.commit(items=[w, d], matches=[match], history=[entry])

        assert [i.id for i in items] == [w.id, d.id]
        assert all(i.version == 1 for i in items)
        assert matches[0].version == 1
        assert (await store.list_history(match_id=match.id))[0].id == entry.id

    @pytest.mark.asyncio
    async def test_commit_is_all_or_nothing(self, store, make_item):
        fresh = await store.put(make_item("withdrawal", 500))
        stale = await store.put(make_item("deposit", 500))
        stale_copy = await store.get(stale.id)
        await store.put(await store.get(stale.id))  # bumps the stored version

        fresh.transition_to(ItemState.MATCHED)
        stale_copy.transition_to(ItemState.MATCHED)
        match = _match(fresh, stale_copy)
        entry = HistoryEntry(event_type=HistoryEventType.MATCH_PROPOSED, match_id=match.id)

        with pytest.raises(ConflictError):
            await store.commit(items=[fresh, stale_copy], matches=[match], history=[entry])

        assert (await store.get(fresh.id)).state == ItemState.PENDING
        assert await store.list_matches() == []
        assert await store.list_history() == []


# ===========================================================================
# HISTORY
# ===========================================================================


class TestHistory:

    @pytest.mark.asyncio
    async def test_filters_and_order(self, store):
        now = utcnow()
        entries = [
            HistoryEntry(
                event_type=HistoryEventType.ITEM_ADDED,
                item_id="item-1",
                payload={"amount": "10.00"},
                timestamp=now - timedelta(seconds=5),
            ),
            HistoryEntry(
                event_type=HistoryEventType.ITEM_STATE_CHANGED,
                item_id="item-1",
                match_id="match-1",
                payload={"from": "pending", "to": "matched"},
                timestamp=now,
            ),
            HistoryEntry(
                event_type=HistoryEventType.MATCH_PROPOSED,
                match_id="match-1",
                timestamp=now,
            ),
        ]
        for entry in entries:
            await store.append_history(entry)

        assert [e.id for e in await store.list_history()] == [e.id for e in entries]
        assert [e.id for e in await store.list_history(item_id="item-1")] == [
            entries[0].id, entries[1].id,
        ]
        assert [e.id for e in await store.list_history(match_id="match-1")] == [
            entries[1].id, entries[2].id,
        ]
        loaded = (await store.list_history(item_id="item-1"))[1]
        assert loaded.payload == {"from": "pending", "to": "matched"}
        assert loaded.event_type == HistoryEventType.ITEM_STATE_CHANGED
        assert loaded.timestamp == now

    @pytest.mark.asyncio
    async def test_same_timestamp_keeps_append_order(self, store):
        now = utcnow()
        entries = [
            HistoryEntry(event_type=HistoryEventType.ITEM_UPDATED, item_id="x", timestamp=now)
            for _ in range(4)
        ]
        await store.commit(history=entries)

        assert [e.id for e in await store.list_history(item_id="x")] == [e.id for e in entries]


# ===========================================================================
# MANAGER ON EACH BACKEND
# ===========================================================================


class TestManagerOnBackend:

    @pytest.mark.asyncio
    async def test_exact_pair_lifecycle(self, manager, store, make_request):
        w = await manager.enqueue(make_request("withdrawal", 500))
        d = await manager.enqueue(make_request("deposit", 500))
        assert d.state == ItemState.MATCHED

        await manager.approve_match(d.match_id)
        await manager.mark_completed(d.match_id)

        for item_id in (w.id, d.id):
            assert (await store.get(item_id)).state == ItemState.COMPLETED
        history = await manager.item_history(w.id)
        assert [e.payload.get("to") for e in history[1:]] == ["matched", "processing", "completed"]

    @pytest.mark.asyncio
    async def test_cancel_matched_on_backend(self, manager, store, make_request):
        w = await manager.enqueue(make_request("withdrawal", 500))
        d = await manager.enqueue(make_request("deposit", 505))

        await manager.cancel(d.id, reason="changed mind")

        assert (await store.get(w.id)).state == ItemState.PENDING
        assert (await store.get_match(d.match_id)).state == MatchState.REJECTED


# ===========================================================================
# FACTORY
# ===========================================================================


class TestBuildStore:

    def test_memory_backend(self):
        assert isinstance(build_store(SimpleNamespace(STORE_BACKEND="memory")), MemoryQueueStore)

    @pytest.mark.asyncio
    async def test_sql_backend(self):
        built = build_store(SimpleNamespace(STORE_BACKEND="SQL"))
        assert isinstance(built, SqlQueueStore)
        await dispose_engine()

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="redis"):
            build_store(SimpleNamespace(STORE_BACKEND="redis"))
