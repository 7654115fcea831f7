"""
Match endpoints — list proposals and record operator decisions.
"""

from fastapi import APIRouter, Depends, Query

from p2p_queue.api.deps import get_manager, get_reporter
from p2p_queue.matching_engine.manager import QueueManager
from p2p_queue.matching_engine.reporter import QueueReporter
from p2p_queue.models.match import MatchState
from p2p_queue.schemas.common import HistoryEntryResponse, HistoryResponse
from p2p_queue.schemas.match import MatchListResponse, MatchResponse, RejectRequest

router = APIRouter()


@router.get("", response_model=MatchListResponse)
async def list_matches(
    state: MatchState | None = Query(None),
    reporter: QueueReporter = Depends(get_reporter),
):
    matches = await reporter.list_matches(state)
    return MatchListResponse(matches=[MatchResponse.model_validate(m) for m in matches])


@router.get("/{match_id}", response_model=MatchResponse)
async def get_match(match_id: str, manager: QueueManager = Depends(get_manager)):
    return MatchResponse.model_validate(await manager.get_match(match_id))


@router.get("/{match_id}/history", response_model=HistoryResponse)
async def get_match_history(match_id: str, manager: QueueManager = Depends(get_manager)):
    entries = await manager.match_history(match_id)
    return HistoryResponse(
        entries=[HistoryEntryResponse.model_validate(e) for e in entries],
    )


@router.post("/{match_id}/approve", response_model=MatchResponse)
async def approve_match(match_id: str, manager: QueueManager = Depends(get_manager)):
    """Approve a proposed match; both items move to processing."""
    return MatchResponse.model_validate(await manager.approve_match(match_id))


@router.post("/{match_id}/reject", response_model=MatchResponse)
async def reject_match(
    match_id: str,
    body: RejectRequest,
    manager: QueueManager = Depends(get_manager),
):
    """Reject a proposed match; both items return to their queues."""
    match = await manager.reject_match(match_id, reason=body.reason)
    return MatchResponse.model_validate(match)


@router.post("/{match_id}/complete", response_model=MatchResponse)
async def complete_match(match_id: str, manager: QueueManager = Depends(get_manager)):
    """Record external settlement of an approved match."""
    return MatchResponse.model_validate(await manager.mark_completed(match_id))
