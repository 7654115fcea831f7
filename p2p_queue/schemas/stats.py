"""
Pydantic schema for the queue statistics endpoint.
"""

from datetime import datetime

from p2p_queue.schemas.common import CamelModel


class StatsResponse(CamelModel):
    total_items: int
    pending_withdrawals: int
    pending_deposits: int
    matched_pairs: int
    average_wait_time: float   # seconds, pending items only
    success_rate: float        # 0.0 - 1.0
    last_updated: datetime
