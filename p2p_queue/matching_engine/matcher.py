"""
Matching algorithm — scores withdrawal/deposit pairs and picks the best one.

Pure functions only: nothing here reads the store or mutates an item, so
concurrent queue-manager calls can share it freely.

Scoring (cumulative, higher is better)::

    payment type identical                    +20
    |withdrawal - deposit| < 10 / 50 / 100    +30 / +20 / +10
    withdrawal.amount <= deposit.amount       +25   (otherwise excluded)
    opposing item waited N minutes            +min(N * 0.1, 10)

A pair is viable only if the payment type or amount proximity contributed
points and the total reaches the configured minimum.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable

from p2p_queue.matching_engine.config import DEFAULT_WEIGHTS, ScoringWeights
from p2p_queue.models.queue_item import ItemKind, ItemState, QueueItem, utcnow


@dataclass(frozen=True)
class ScoreBreakdown:
    payment_type: float = 0.0
    proximity: float = 0.0
    direction: float = 0.0
    age_bonus: float = 0.0
    direction_valid: bool = True

    @property
    def total(self) -> float:
        return self.payment_type + self.proximity + self.direction + self.age_bonus

    def is_viable(self, min_score: float) -> bool:
        if not self.direction_valid:
            return False
        if self.payment_type <= 0 and self.proximity <= 0:
            return False
        return self.total >= min_score

    def as_dict(self) -> dict:
        return {
            "payment_type": self.payment_type,
            "proximity": self.proximity,
            "direction": self.direction,
            "age_bonus": self.age_bonus,
            "total": self.total,
        }


@dataclass(frozen=True)
class MatchCandidate:
    """Best opposing item found for a candidate, with its score."""

    withdrawal: QueueItem
    deposit: QueueItem
    breakdown: ScoreBreakdown

    @property
    def score(self) -> float:
        return round(self.breakdown.total, 4)


# ── Scoring ─────────────────────────────────────────────────────────────


def proximity_points(withdrawal: QueueItem, deposit: QueueItem,
                     weights: ScoringWeights = DEFAULT_WEIGHTS) -> float:
    diff = abs(withdrawal.amount - deposit.amount)
    if diff < weights.close_threshold:
        return weights.amount_close
    if diff < weights.near_threshold:
        return weights.amount_near
    if diff < weights.far_threshold:
        return weights.amount_far
    return 0.0


def age_bonus(item: QueueItem, now: datetime | None = None,
              weights: ScoringWeights = DEFAULT_WEIGHTS) -> float:
    """Bonus that grows with how long *item* has waited, capped."""
    now = now or utcnow()
    waited_minutes = max((now - item.enqueued_at).total_seconds(), 0.0) / 60
    return min(waited_minutes * weights.age_per_minute, weights.age_max)


def score_pair(
    withdrawal: QueueItem,
    deposit: QueueItem,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> ScoreBreakdown:
    """
    Score a withdrawal/deposit pair without the age bonus.

    ``direction_valid`` is False when the deposit cannot cover the
    withdrawal; such pairs are never proposed.
    """
    if withdrawal.kind != ItemKind.WITHDRAWAL or deposit.kind != ItemKind.DEPOSIT:
        raise ValueError("score_pair expects (withdrawal, deposit)")

    direction_valid = withdrawal.amount <= deposit.amount
    return ScoreBreakdown(
        payment_type=(
            weights.payment_type
            if withdrawal.payment_type == deposit.payment_type else 0.0
        ),
        proximity=proximity_points(withdrawal, deposit, weights),
        direction=weights.direction if direction_valid else 0.0,
        direction_valid=direction_valid,
    )


# ── Selection ───────────────────────────────────────────────────────────


def _eligible(candidate: QueueItem, other: QueueItem, exclude_ids: set[str]) -> bool:
    if other.state != ItemState.PENDING:
        return False
    if other.kind == candidate.kind or other.id == candidate.id:
        return False
    # Self-matching is a correctness rule, not a scoring penalty
    if other.customer_id == candidate.customer_id:
        return False
    return other.id not in exclude_ids


def find_best_match(
    candidate: QueueItem,
    opposing_queue: Iterable[QueueItem],
    now: datetime | None = None,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
    exclude_ids: Iterable[str] = (),
) -> MatchCandidate | None:
    """
    Pick the highest-scoring viable counterpart for *candidate*.

    Ties go to the earliest ``enqueued_at`` (then lowest id). Returns
    ``None`` when nothing in *opposing_queue* is viable.
    """
    now = now or utcnow()
    excluded = set(exclude_ids)

    best: MatchCandidate | None = None
    best_key: tuple | None = None

    for other in opposing_queue:
        if not _eligible(candidate, other, excluded):
            continue

        if candidate.kind == ItemKind.WITHDRAWAL:
            withdrawal, deposit = candidate, other
        else:
            withdrawal, deposit = other, candidate

        breakdown = score_pair(withdrawal, deposit, weights)
        if not breakdown.direction_valid:
            continue
        breakdown = replace(breakdown, age_bonus=age_bonus(other, now, weights))
        if not breakdown.is_viable(weights.min_score):
            continue

        key = (-breakdown.total, other.enqueued_at, other.id)
        if best_key is None or key < best_key:
            best_key = key
            best = MatchCandidate(withdrawal, deposit, breakdown)

    return best
