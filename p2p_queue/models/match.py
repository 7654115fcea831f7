"""
Match record model — a proposed or resolved withdrawal/deposit pairing.

When the matching algorithm pairs a pending withdrawal with a pending
deposit, a Match is created in ``proposed`` state and waits for an
operator to approve or reject it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from p2p_queue.core.errors import InvalidTransitionError
from p2p_queue.models.queue_item import CaseInsensitiveEnum, new_id, utcnow


class MatchState(CaseInsensitiveEnum):
    PROPOSED = "proposed"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


MATCH_TRANSITIONS: dict[MatchState, set[MatchState]] = {
    MatchState.PROPOSED: {MatchState.APPROVED, MatchState.REJECTED},
    MatchState.APPROVED: {MatchState.COMPLETED},
    MatchState.REJECTED: set(),
    MatchState.COMPLETED: set(),
}

# Matches that still hold their two items out of the pending queue
ACTIVE_MATCH_STATES = frozenset({MatchState.PROPOSED, MatchState.APPROVED})


@dataclass
class Match:
    withdrawal_id: str
    deposit_id: str
    score: float
    amount: Decimal
    id: str = field(default_factory=new_id)
    state: MatchState = MatchState.PROPOSED
    reason: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    resolved_at: datetime | None = None
    completed_at: datetime | None = None
    version: int = 0

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_MATCH_STATES

    @property
    def item_ids(self) -> tuple[str, str]:
        return self.withdrawal_id, self.deposit_id

    def counterpart_of(self, item_id: str) -> str:
        """Return the id of the other item in this pairing."""
        if item_id == self.withdrawal_id:
            return self.deposit_id
        if item_id == self.deposit_id:
            return self.withdrawal_id
        raise ValueError(f"Item {item_id} is not part of match {self.id}")

    def transition_to(self, new_state: MatchState, reason: str | None = None) -> None:
        """
        Move to *new_state*, stamping ``resolved_at`` / ``completed_at``.

        Raises InvalidTransitionError if the move is not allowed.
        """
        if new_state not in MATCH_TRANSITIONS.get(self.state, set()):
            raise InvalidTransitionError("match", self.state.value, new_state.value)
        self.state = new_state

        now = utcnow()
        if new_state in (MatchState.APPROVED, MatchState.REJECTED):
            self.resolved_at = now
        elif new_state == MatchState.COMPLETED:
            self.completed_at = now
        if reason is not None:
            self.reason = reason

    def snapshot(self) -> dict:
        return {
            "id": self.id,
            "withdrawal_id": self.withdrawal_id,
            "deposit_id": self.deposit_id,
            "score": self.score,
            "amount": str(self.amount),
            "state": self.state.value,
            "reason": self.reason,
            "created_at": self.created_at.isoformat(),
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "version": self.version,
        }

    def __repr__(self) -> str:
        return (
            f"<Match {self.id[:8]} w={self.withdrawal_id[:8]} "
            f"d={self.deposit_id[:8]} score={self.score} "
            f"state={self.state.value}>"
        )
