"""
Pydantic schemas shared by the queue and match endpoints.

Bodies and responses use camelCase keys (``customerId``, ``paymentType``);
snake_case field names are accepted on input as well.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from p2p_queue.models.history import HistoryEventType


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorResponse(BaseModel):
    """Body of every non-2xx response raised by the queue engine."""
    error: str
    detail: str
    retryable: bool = False


class HistoryEntryResponse(CamelModel):
    id: str
    event_type: HistoryEventType
    item_id: str | None
    match_id: str | None
    payload: dict
    timestamp: datetime


class HistoryResponse(CamelModel):
    entries: list[HistoryEntryResponse]
