"""
Queue item model — a pending withdrawal or deposit request.

- Two kinds (withdrawal / deposit), one live queue per kind
- 6-state lifecycle with validated transitions
- ``amount`` is fixed at creation; ``version`` is the optimistic
  concurrency stamp checked by the queue store on every write
"""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from p2p_queue.core.errors import InvalidTransitionError

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class CaseInsensitiveEnum(str, enum.Enum):
    """String enum that also accepts "Pending", "PENDING" for "pending"."""

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            lowered = value.lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return None


class ItemKind(CaseInsensitiveEnum):
    WITHDRAWAL = "withdrawal"
    DEPOSIT = "deposit"

    @property
    def opposite(self) -> "ItemKind":
        if self is ItemKind.WITHDRAWAL:
            return ItemKind.DEPOSIT
        return ItemKind.WITHDRAWAL


class ItemState(CaseInsensitiveEnum):
    PENDING = "pending"
    MATCHED = "matched"
    PROCESSING = "processing"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class PaymentType(CaseInsensitiveEnum):
    BANK_TRANSFER = "bank_transfer"
    CRYPTO = "crypto"
    PAYPAL = "paypal"
    ZELLE = "zelle"
    VENMO = "venmo"
    CASHAPP = "cashapp"
    APPLE_PAY = "apple_pay"
    GOOGLE_PAY = "google_pay"


ACTIVE_STATES = frozenset({ItemState.PENDING, ItemState.MATCHED, ItemState.PROCESSING})
TERMINAL_STATES = frozenset({ItemState.COMPLETED, ItemState.REJECTED, ItemState.CANCELLED})

# Amounts are stored as NUMERIC(18, 2)
AMOUNT_MAX_DIGITS = 18
AMOUNT_DECIMAL_PLACES = 2


# ---------------------------------------------------------------------------
# State transition map
# ---------------------------------------------------------------------------

VALID_TRANSITIONS: dict[ItemState, set[ItemState]] = {
    ItemState.PENDING: {
        ItemState.MATCHED,
        ItemState.CANCELLED,
    },
    ItemState.MATCHED: {
        ItemState.PROCESSING,
        ItemState.PENDING,
        ItemState.CANCELLED,
    },
    ItemState.PROCESSING: {
        ItemState.COMPLETED,
    },
    ItemState.COMPLETED: set(),
    ItemState.REJECTED: set(),
    ItemState.CANCELLED: set(),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------


@dataclass
class QueueItem:
    kind: ItemKind
    customer_id: str
    amount: Decimal
    payment_type: PaymentType
    id: str = field(default_factory=new_id)
    priority: int = 1
    state: ItemState = ItemState.PENDING
    enqueued_at: datetime = field(default_factory=utcnow)
    channel_ref: str | None = None
    notes: str | None = None
    match_id: str | None = None
    updated_at: datetime = field(default_factory=utcnow)
    version: int = 0

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    # ------------------------------------------------------------------
    # State transition validation
    # ------------------------------------------------------------------

    @staticmethod
    def is_valid_transition(from_state: ItemState, to_state: ItemState) -> bool:
        """Check whether a state transition is allowed."""
        return to_state in VALID_TRANSITIONS.get(from_state, set())

    def transition_to(self, new_state: ItemState) -> ItemState:
        """
        Move to *new_state* if the edge exists in ``VALID_TRANSITIONS``.

        Returns the previous state. Raises InvalidTransitionError otherwise.
        """
        if not self.is_valid_transition(self.state, new_state):
            raise InvalidTransitionError("item", self.state.value, new_state.value)
        previous = self.state
        self.state = new_state
        self.updated_at = utcnow()
        # Completed items keep their match reference for the audit trail
        if new_state in (ItemState.PENDING, ItemState.CANCELLED):
            self.match_id = None
        return previous

    def snapshot(self) -> dict:
        """JSON-friendly copy used for history payloads and notifications."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "customer_id": self.customer_id,
            "amount": str(self.amount),
            "payment_type": self.payment_type.value,
            "priority": self.priority,
            "state": self.state.value,
            "enqueued_at": self.enqueued_at.isoformat(),
            "channel_ref": self.channel_ref,
            "notes": self.notes,
            "match_id": self.match_id,
            "version": self.version,
        }

    def __repr__(self) -> str:
        return (
            f"<QueueItem {self.id[:8]} {self.kind.value} "
            f"{self.amount} {self.payment_type.value} "
            f"state={self.state.value}>"
        )
