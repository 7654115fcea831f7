"""
History entries — the append-only audit trail.

Every state change of an item or match, and every failed notification
delivery, is recorded as one entry. Entries are never updated or deleted.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime

from p2p_queue.models.queue_item import new_id, utcnow


class HistoryEventType(str, enum.Enum):
    ITEM_ADDED = "item_added"
    ITEM_STATE_CHANGED = "item_state_changed"
    ITEM_UPDATED = "item_updated"
    MATCH_PROPOSED = "match_proposed"
    MATCH_APPROVED = "match_approved"
    MATCH_REJECTED = "match_rejected"
    MATCH_COMPLETED = "match_completed"
    NOTIFICATION_FAILED = "notification_failed"


@dataclass(frozen=True)
class HistoryEntry:
    event_type: HistoryEventType
    item_id: str | None = None
    match_id: str | None = None
    payload: dict = field(default_factory=dict)
    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type.value,
            "item_id": self.item_id,
            "match_id": self.match_id,
            "payload": self.payload,
            "timestamp": self.timestamp.isoformat(),
        }


def state_change(item_id: str, from_state: str, to_state: str, **extra) -> HistoryEntry:
    """Build an ``item_state_changed`` entry with from/to in the payload."""
    return HistoryEntry(
        event_type=HistoryEventType.ITEM_STATE_CHANGED,
        item_id=item_id,
        match_id=extra.pop("match_id", None),
        payload={"from": from_state, "to": to_state, **extra},
    )
