"""
Pydantic schemas for queue submission, listing, and operator edits.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import Field, field_validator

from p2p_queue.models.queue_item import (
    AMOUNT_DECIMAL_PLACES,
    AMOUNT_MAX_DIGITS,
    ItemKind,
    ItemState,
    PaymentType,
)
from p2p_queue.schemas.common import CamelModel


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class QueueItemCreateRequest(CamelModel):
    """Body for POST /queue/withdrawal and POST /queue/deposit."""
    customer_id: str = Field(..., min_length=1, max_length=100, examples=["CUST-1042"])
    amount: Decimal = Field(
        ...,
        gt=0,
        max_digits=AMOUNT_MAX_DIGITS,
        decimal_places=AMOUNT_DECIMAL_PLACES,
        examples=[500],
    )
    payment_type: PaymentType = Field(..., examples=["bank_transfer"])
    channel_ref: str | None = Field(None, max_length=100, examples=["-1001234567890"])
    priority: int = Field(1, ge=0, le=100)
    notes: str | None = Field(None, max_length=1000)

    @field_validator("customer_id")
    @classmethod
    def strip_customer_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("customerId must not be blank")
        return v


class QueueItemUpdateRequest(CamelModel):
    """Operator edit; at least one field must be set."""
    notes: str | None = Field(None, max_length=1000)
    priority: int | None = Field(None, ge=0, le=100)


class CancelRequest(CamelModel):
    reason: str | None = Field(None, max_length=500)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class QueueItemResponse(CamelModel):
    id: str
    kind: ItemKind
    customer_id: str
    amount: Decimal
    payment_type: PaymentType
    priority: int
    state: ItemState
    enqueued_at: datetime
    updated_at: datetime
    channel_ref: str | None
    notes: str | None
    match_id: str | None
    version: int


class QueueItemListResponse(CamelModel):
    items: list[QueueItemResponse]
