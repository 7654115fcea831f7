"""
Queue endpoints — submit, list, export, edit, cancel and audit items.
"""

import logging
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, Response, status

from p2p_queue.api.deps import get_manager, get_reporter
from p2p_queue.matching_engine.manager import EnqueueRequest, QueueManager
from p2p_queue.matching_engine.reporter import QueueReporter
from p2p_queue.models.queue_item import ItemKind, ItemState, PaymentType
from p2p_queue.schemas.common import HistoryEntryResponse, HistoryResponse
from p2p_queue.schemas.queue import (
    CancelRequest,
    QueueItemCreateRequest,
    QueueItemListResponse,
    QueueItemResponse,
    QueueItemUpdateRequest,
)
from p2p_queue.store.base import ItemFilter

router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _item_filter(
    kind: ItemKind | None = Query(None),
    payment_type: PaymentType | None = Query(None, alias="paymentType"),
    min_amount: Decimal | None = Query(None, ge=0, alias="minAmount"),
    max_amount: Decimal | None = Query(None, ge=0, alias="maxAmount"),
    state: ItemState | None = Query(None),
    customer_id: str | None = Query(None, alias="customerId"),
) -> ItemFilter:
    return ItemFilter(
        kind=kind,
        payment_type=payment_type,
        min_amount=min_amount,
        max_amount=max_amount,
        state=state,
        customer_id=customer_id,
    )


async def _enqueue(
    kind: ItemKind, body: QueueItemCreateRequest, manager: QueueManager,
) -> QueueItemResponse:
    item = await manager.enqueue(EnqueueRequest(
        kind=kind,
        customer_id=body.customer_id,
        amount=body.amount,
        payment_type=body.payment_type,
        channel_ref=body.channel_ref,
        priority=body.priority,
        notes=body.notes,
    ))
    return QueueItemResponse.model_validate(item)


# ---------------------------------------------------------------------------
# Submit
# ---------------------------------------------------------------------------


@router.post(
    "/withdrawal",
    response_model=QueueItemResponse,
    status_code=status.HTTP_201_CREATED,
)
async def enqueue_withdrawal(
    body: QueueItemCreateRequest,
    manager: QueueManager = Depends(get_manager),
):
    """Add a withdrawal request and attempt to match it immediately."""
    return await _enqueue(ItemKind.WITHDRAWAL, body, manager)


@router.post(
    "/deposit",
    response_model=QueueItemResponse,
    status_code=status.HTTP_201_CREATED,
)
async def enqueue_deposit(
    body: QueueItemCreateRequest,
    manager: QueueManager = Depends(get_manager),
):
    """Add a deposit request and attempt to match it immediately."""
    return await _enqueue(ItemKind.DEPOSIT, body, manager)


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


@router.get("", response_model=QueueItemListResponse)
async def list_queue_items(
    item_filter: ItemFilter = Depends(_item_filter),
    reporter: QueueReporter = Depends(get_reporter),
):
    items = await reporter.filter_items(item_filter)
    return QueueItemListResponse(
        items=[QueueItemResponse.model_validate(i) for i in items],
    )


@router.get("/export")
async def export_queue_items(
    item_filter: ItemFilter = Depends(_item_filter),
    reporter: QueueReporter = Depends(get_reporter),
):
    """CSV export of queue items for audit."""
    body = await reporter.export_csv(item_filter)
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="p2p_queue.csv"'},
    )


@router.get("/{item_id}", response_model=QueueItemResponse)
async def get_queue_item(item_id: str, manager: QueueManager = Depends(get_manager)):
    return QueueItemResponse.model_validate(await manager.get_item(item_id))


@router.get("/{item_id}/history", response_model=HistoryResponse)
async def get_queue_item_history(item_id: str, manager: QueueManager = Depends(get_manager)):
    entries = await manager.item_history(item_id)
    return HistoryResponse(
        entries=[HistoryEntryResponse.model_validate(e) for e in entries],
    )


# ---------------------------------------------------------------------------
# Operator actions
# ---------------------------------------------------------------------------


@router.patch("/{item_id}", response_model=QueueItemResponse)
async def update_queue_item(
    item_id: str,
    body: QueueItemUpdateRequest,
    manager: QueueManager = Depends(get_manager),
):
    """Edit notes and/or priority of an item."""
    item = await manager.update_item(item_id, notes=body.notes, priority=body.priority)
    return QueueItemResponse.model_validate(item)


@router.post("/{item_id}/cancel", response_model=QueueItemResponse)
async def cancel_queue_item(
    item_id: str,
    body: CancelRequest | None = None,
    manager: QueueManager = Depends(get_manager),
):
    """
    Cancel a pending or matched item.

    Returns 409 ``invalid_transition`` once the item is processing or
    finished: too late to cancel.
    """
    reason = body.reason if body else None
    item = await manager.cancel(item_id, reason=reason)
    return QueueItemResponse.model_validate(item)
