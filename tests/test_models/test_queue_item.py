"""Tests for the QueueItem model — defaults, state transitions, snapshots."""

from decimal import Decimal

import pytest

from p2p_queue.core.errors import InvalidTransitionError
from p2p_queue.models.queue_item import (
    ACTIVE_STATES,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    ItemKind,
    ItemState,
    PaymentType,
    QueueItem,
)


@pytest.fixture
def item():
    """A fresh pending withdrawal."""
    return QueueItem(
        kind=ItemKind.WITHDRAWAL,
        customer_id="CUST-1",
        amount=Decimal("500.00"),
        payment_type=PaymentType.BANK_TRANSFER,
        channel_ref="chat-1",
    )


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


class TestQueueItemCreation:
    def test_defaults(self, item):
        assert item.id
        assert item.state == ItemState.PENDING
        assert item.priority == 1
        assert item.version == 0
        assert item.match_id is None
        assert item.notes is None
        assert item.enqueued_at.tzinfo is not None
        assert item.is_active
        assert not item.is_terminal

    def test_ids_are_unique(self):
        ids = {
            QueueItem(ItemKind.DEPOSIT, "C", Decimal("1"), PaymentType.CRYPTO).id
            for _ in range(100)
        }
        assert len(ids) == 100

    def test_opposite_kind(self):
        assert ItemKind.WITHDRAWAL.opposite == ItemKind.DEPOSIT
        assert ItemKind.DEPOSIT.opposite == ItemKind.WITHDRAWAL

    def test_repr(self, item):
        r = repr(item)
        assert "withdrawal" in r
        assert "500.00" in r
        assert "pending" in r

    def test_state_sets_partition(self):
        assert ACTIVE_STATES | TERMINAL_STATES == set(ItemState)
        assert not ACTIVE_STATES & TERMINAL_STATES


# ---------------------------------------------------------------------------
# State transitions
# ---------------------------------------------------------------------------


class TestItemTransitions:

    def test_pending_to_matched(self, item):
        previous = item.transition_to(ItemState.MATCHED)
        assert previous == ItemState.PENDING
        assert item.state == ItemState.MATCHED

    def test_matched_back_to_pending_clears_match(self, item):
        item.transition_to(ItemState.MATCHED)
        item.match_id = "m-1"
        item.transition_to(ItemState.PENDING)
        assert item.state == ItemState.PENDING
        assert item.match_id is None

    def test_completed_keeps_match_reference(self, item):
        item.transition_to(ItemState.MATCHED)
        item.match_id = "m-1"
        item.transition_to(ItemState.PROCESSING)
        item.transition_to(ItemState.COMPLETED)
        assert item.match_id == "m-1"
        assert item.is_terminal

    def test_cancel_from_matched(self, item):
        item.transition_to(ItemState.MATCHED)
        item.match_id = "m-1"
        item.transition_to(ItemState.CANCELLED)
        assert item.match_id is None

    def test_transition_touches_updated_at(self, item):
        before = item.updated_at
        item.transition_to(ItemState.CANCELLED)
        assert item.updated_at >= before

    @pytest.mark.parametrize("path", [
        [ItemState.PROCESSING],
        [ItemState.COMPLETED],
        [ItemState.PENDING],
        [ItemState.MATCHED, ItemState.COMPLETED],
        [ItemState.MATCHED, ItemState.PROCESSING, ItemState.CANCELLED],
        [ItemState.MATCHED, ItemState.PROCESSING, ItemState.PENDING],
        [ItemState.CANCELLED, ItemState.PENDING],
    ])
    def test_invalid_paths(self, item, path):
        *legal, illegal = path
        for state in legal:
            item.transition_to(state)
        before = item.state
        with pytest.raises(InvalidTransitionError) as exc_info:
            item.transition_to(illegal)
        assert item.state == before
        assert exc_info.value.from_state == before.value
        assert exc_info.value.to_state == illegal.value

    def test_terminal_states_have_no_exits(self):
        for state in TERMINAL_STATES:
            assert VALID_TRANSITIONS[state] == set()

    def test_rejected_is_never_entered(self):
        assert all(ItemState.REJECTED not in targets for targets in VALID_TRANSITIONS.values())


class TestSnapshot:

    def test_snapshot_is_json_friendly(self, item):
        snap = item.snapshot()
        assert snap["kind"] == "withdrawal"
        assert snap["amount"] == "500.00"
        assert snap["payment_type"] == "bank_transfer"
        assert snap["state"] == "pending"
        assert snap["channel_ref"] == "chat-1"
        assert isinstance(snap["enqueued_at"], str)


class TestEnumParsing:

    @pytest.mark.parametrize("raw, expected", [
        ("Pending", ItemState.PENDING),
        ("MATCHED", ItemState.MATCHED),
        ("cancelled", ItemState.CANCELLED),
    ])
    def test_state_any_case(self, raw, expected):
        assert ItemState(raw) is expected

    def test_kind_and_payment_type_any_case(self):
        assert ItemKind("Withdrawal") is ItemKind.WITHDRAWAL
        assert PaymentType("Bank_Transfer") is PaymentType.BANK_TRANSFER

    def test_unknown_value_still_rejected(self):
        with pytest.raises(ValueError):
            ItemState("lost")
