"""
ORM tables backing ``SqlQueueStore``.

Rows are plain persistence shapes; the domain dataclasses in
``p2p_queue.models`` stay free of SQLAlchemy. ``to_model`` / ``values_from``
convert in both directions.
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Float,
    Integer,
    Numeric,
    String,
    Text,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from p2p_queue.database import Base
from p2p_queue.models.history import HistoryEntry, HistoryEventType
from p2p_queue.models.match import Match, MatchState
from p2p_queue.models.queue_item import (
    AMOUNT_DECIMAL_PLACES,
    AMOUNT_MAX_DIGITS,
    ItemKind,
    ItemState,
    PaymentType,
    QueueItem,
)


def _enum(enum_cls, name: str) -> SAEnum:
    # Persist the lowercase values, matching the migrations
    return SAEnum(enum_cls, name=name, values_callable=lambda e: [m.value for m in e])


def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Queue items
# ---------------------------------------------------------------------------


class QueueItemRow(Base):
    __tablename__ = "queue_items"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_queue_items_amount_positive"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    kind: Mapped[ItemKind] = mapped_column(
        _enum(ItemKind, "itemkind"), index=True, nullable=False,
    )
    customer_id: Mapped[str] = mapped_column(String(100), index=True, nullable=False)
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=AMOUNT_MAX_DIGITS, scale=AMOUNT_DECIMAL_PLACES), nullable=False,
    )
    payment_type: Mapped[PaymentType] = mapped_column(
        _enum(PaymentType, "paymenttype"), nullable=False,
    )
    priority: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    state: Mapped[ItemState] = mapped_column(
        _enum(ItemState, "itemstate"), index=True, nullable=False,
    )
    channel_ref: Mapped[str | None] = mapped_column(String(100))
    notes: Mapped[str | None] = mapped_column(Text)
    match_id: Mapped[str | None] = mapped_column(String(32))

    enqueued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    @staticmethod
    def values_from(item: QueueItem) -> dict:
        return {
            "id": item.id,
            "kind": item.kind,
            "customer_id": item.customer_id,
            "amount": item.amount,
            "payment_type": item.payment_type,
            "priority": item.priority,
            "state": item.state,
            "channel_ref": item.channel_ref,
            "notes": item.notes,
            "match_id": item.match_id,
            "enqueued_at": item.enqueued_at,
            "updated_at": item.updated_at,
        }

    def to_model(self) -> QueueItem:
        return QueueItem(
            id=self.id,
            kind=self.kind,
            customer_id=self.customer_id,
            amount=Decimal(self.amount),
            payment_type=self.payment_type,
            priority=self.priority,
            state=self.state,
            channel_ref=self.channel_ref,
            notes=self.notes,
            match_id=self.match_id,
            enqueued_at=_aware(self.enqueued_at),
            updated_at=_aware(self.updated_at),
            version=self.version,
        )

    def __repr__(self) -> str:
        return f"<QueueItemRow {self.id[:8]} {self.kind.value} v{self.version}>"


# ---------------------------------------------------------------------------
# Matches
# ---------------------------------------------------------------------------


class MatchRow(Base):
    __tablename__ = "matches"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    withdrawal_id: Mapped[str] = mapped_column(String(32), index=True, nullable=False)
    deposit_id: Mapped[str] = mapped_column(String(32), index=True, nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=AMOUNT_MAX_DIGITS, scale=AMOUNT_DECIMAL_PLACES), nullable=False,
    )
    state: Mapped[MatchState] = mapped_column(
        _enum(MatchState, "matchstate"), index=True, nullable=False,
    )
    reason: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    @staticmethod
    def values_from(match: Match) -> dict:
        return {
            "id": match.id,
            "withdrawal_id": match.withdrawal_id,
            "deposit_id": match.deposit_id,
            "score": match.score,
            "amount": match.amount,
            "state": match.state,
            "reason": match.reason,
            "created_at": match.created_at,
            "resolved_at": match.resolved_at,
            "completed_at": match.completed_at,
        }

    def to_model(self) -> Match:
        return Match(
            id=self.id,
            withdrawal_id=self.withdrawal_id,
            deposit_id=self.deposit_id,
            score=self.score,
            amount=Decimal(self.amount),
            state=self.state,
            reason=self.reason,
            created_at=_aware(self.created_at),
            resolved_at=_aware(self.resolved_at),
            completed_at=_aware(self.completed_at),
            version=self.version,
        )


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


class HistoryRow(Base):
    __tablename__ = "queue_history"

    # Insertion order breaks timestamp ties
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    event_type: Mapped[HistoryEventType] = mapped_column(
        _enum(HistoryEventType, "historyeventtype"), nullable=False,
    )
    item_id: Mapped[str | None] = mapped_column(String(32), index=True)
    match_id: Mapped[str | None] = mapped_column(String(32), index=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_model(cls, entry: HistoryEntry) -> "HistoryRow":
        return cls(
            id=entry.id,
            event_type=entry.event_type,
            item_id=entry.item_id,
            match_id=entry.match_id,
            payload=entry.payload,
            timestamp=entry.timestamp,
        )

    def to_model(self) -> HistoryEntry:
        return HistoryEntry(
            id=self.id,
            event_type=self.event_type,
            item_id=self.item_id,
            match_id=self.match_id,
            payload=dict(self.payload or {}),
            timestamp=_aware(self.timestamp),
        )
