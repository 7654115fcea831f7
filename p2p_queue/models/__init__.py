"""Domain models for the P2P queue engine."""

from p2p_queue.models.queue_item import (
    ItemKind,
    ItemState,
    PaymentType,
    QueueItem,
    VALID_TRANSITIONS,
)
from p2p_queue.models.match import Match, MatchState, MATCH_TRANSITIONS
from p2p_queue.models.history import HistoryEntry, HistoryEventType

__all__ = [
    "ItemKind", "ItemState", "PaymentType", "QueueItem", "VALID_TRANSITIONS",
    "Match", "MatchState", "MATCH_TRANSITIONS",
    "HistoryEntry", "HistoryEventType",
]
