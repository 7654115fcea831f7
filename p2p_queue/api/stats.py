"""
Queue statistics endpoint for the operator dashboard.
"""

from fastapi import APIRouter, Depends

from p2p_queue.api.deps import get_reporter
from p2p_queue.matching_engine.reporter import QueueReporter
from p2p_queue.schemas.stats import StatsResponse

router = APIRouter()


@router.get("", response_model=StatsResponse)
async def get_stats(reporter: QueueReporter = Depends(get_reporter)):
    return StatsResponse(**await reporter.get_stats())
