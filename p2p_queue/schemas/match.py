"""
Pydantic schemas for match listing and operator decisions.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import Field

from p2p_queue.models.match import MatchState
from p2p_queue.schemas.common import CamelModel


class RejectRequest(CamelModel):
    reason: str = Field(..., min_length=1, max_length=500, examples=["Customer unreachable"])


class MatchResponse(CamelModel):
    id: str
    withdrawal_id: str
    deposit_id: str
    score: float
    amount: Decimal
    state: MatchState
    reason: str | None
    created_at: datetime
    resolved_at: datetime | None
    completed_at: datetime | None
    version: int


class MatchListResponse(CamelModel):
    matches: list[MatchResponse]
