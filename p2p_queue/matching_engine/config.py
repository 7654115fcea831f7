"""
Matching engine configuration constants.

Scoring weights and amount-proximity thresholds used by the matcher.
Defaults come from settings so deployments can retune them via env.
"""

from dataclasses import dataclass
from decimal import Decimal

from p2p_queue.config import settings

# Points for an identical payment type
WEIGHT_PAYMENT_TYPE = settings.SCORE_PAYMENT_TYPE

# Amount proximity bands: |withdrawal - deposit| strictly below threshold
WEIGHT_AMOUNT_CLOSE = settings.SCORE_AMOUNT_CLOSE
WEIGHT_AMOUNT_NEAR = settings.SCORE_AMOUNT_NEAR
WEIGHT_AMOUNT_FAR = settings.SCORE_AMOUNT_FAR
AMOUNT_CLOSE_THRESHOLD = settings.AMOUNT_CLOSE_THRESHOLD
AMOUNT_NEAR_THRESHOLD = settings.AMOUNT_NEAR_THRESHOLD
AMOUNT_FAR_THRESHOLD = settings.AMOUNT_FAR_THRESHOLD

# Deposit covers the withdrawal
WEIGHT_DIRECTION = settings.SCORE_DIRECTION

# Waiting-time bonus for the opposing item, capped
AGE_BONUS_PER_MINUTE = settings.AGE_BONUS_PER_MINUTE
AGE_BONUS_MAX = settings.AGE_BONUS_MAX

# Candidates scoring below this are never proposed
MIN_MATCH_SCORE = settings.MATCH_MIN_SCORE


@dataclass(frozen=True)
class ScoringWeights:
    payment_type: float = WEIGHT_PAYMENT_TYPE
    amount_close: float = WEIGHT_AMOUNT_CLOSE
    amount_near: float = WEIGHT_AMOUNT_NEAR
    amount_far: float = WEIGHT_AMOUNT_FAR
    close_threshold: Decimal = AMOUNT_CLOSE_THRESHOLD
    near_threshold: Decimal = AMOUNT_NEAR_THRESHOLD
    far_threshold: Decimal = AMOUNT_FAR_THRESHOLD
    direction: float = WEIGHT_DIRECTION
    age_per_minute: float = AGE_BONUS_PER_MINUTE
    age_max: float = AGE_BONUS_MAX
    min_score: float = MIN_MATCH_SCORE


DEFAULT_WEIGHTS = ScoringWeights()
