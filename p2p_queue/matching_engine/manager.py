"""
Queue manager — orchestrates enqueue, matching and the match lifecycle.

Every operation follows the same shape: read fresh copies from the store,
apply the state change in memory (``transition_to`` validates each edge),
then commit items, match and history entries as one version-checked unit
of work. Losing a version race raises ``ConflictError`` from the store and
the whole operation is re-run from a fresh read, up to ``max_retries``
extra times. ``InvalidTransitionError`` means the caller's view is stale
and is never retried.

Notifications are handed to the dispatcher only after the commit, so a
slow or failing channel can never block or undo a transition.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Awaitable, Callable, Iterable, TypeVar

from p2p_queue.config import settings
from p2p_queue.core.errors import ConflictError, ValidationError
from p2p_queue.matching_engine.config import DEFAULT_WEIGHTS, ScoringWeights
from p2p_queue.matching_engine.matcher import find_best_match
from p2p_queue.models.history import HistoryEntry, HistoryEventType, state_change
from p2p_queue.models.match import Match, MatchState
from p2p_queue.models.queue_item import (
    AMOUNT_DECIMAL_PLACES,
    AMOUNT_MAX_DIGITS,
    ItemKind,
    ItemState,
    PaymentType,
    QueueItem,
    utcnow,
)
from p2p_queue.notifications.dispatcher import (
    NotificationDispatcher,
    NotificationEvent,
    NotificationType,
)
from p2p_queue.store.base import ItemFilter, QueueStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_PRIORITY = 100


@dataclass
class EnqueueRequest:
    """Raw submission, validated by ``QueueManager.enqueue``."""

    kind: ItemKind | str
    customer_id: str
    amount: Decimal | str | int
    payment_type: PaymentType | str
    channel_ref: str | None = None
    priority: int = 1
    notes: str | None = None


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


def _parse_enum(enum_cls, value, label: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationError(f"Unknown {label} {value!r}; expected one of: {allowed}")


def _parse_amount(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Amount must be a number, got {value!r}")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Amount must be greater than 0")
    if amount.as_tuple().exponent < -AMOUNT_DECIMAL_PLACES:
        raise ValidationError("Amount must have at most two decimal places")
    if amount.adjusted() >= AMOUNT_MAX_DIGITS - AMOUNT_DECIMAL_PLACES:
        raise ValidationError(
            f"Amount must have at most {AMOUNT_MAX_DIGITS - AMOUNT_DECIMAL_PLACES} digits "
            "before the decimal point"
        )
    return amount


def _validate_priority(priority) -> int:
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise ValidationError("Priority must be an integer")
    if not 0 <= priority <= MAX_PRIORITY:
        raise ValidationError(f"Priority must be between 0 and {MAX_PRIORITY}")
    return priority


class QueueManager:
    """Single entry point for every queue and match state change."""

    def __init__(
        self,
        store: QueueStore,
        dispatcher: NotificationDispatcher | None = None,
        weights: ScoringWeights = DEFAULT_WEIGHTS,
        max_retries: int = settings.MATCH_MAX_RETRIES,
        payment_limits: dict[str, Decimal] | None = None,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.weights = weights
        self.max_retries = max_retries
        self.payment_limits = (
            settings.PAYMENT_TYPE_LIMITS if payment_limits is None else payment_limits
        )

    # ── Retry / notify plumbing ─────────────────────────────────────────

    async def _retrying(self, action: str, attempt: Callable[[], Awaitable[T]]) -> T:
        for n in range(self.max_retries + 1):
            try:
                return await attempt()
            except ConflictError:
                if n == self.max_retries:
                    logger.warning("%s: version conflict persisted after %d attempts", action, n + 1)
                    raise
                logger.info("%s: version conflict, retrying (%d/%d)", action, n + 1, self.max_retries)
        raise AssertionError("unreachable")

    async def _notify(
        self,
        event_type: NotificationType,
        items: Iterable[QueueItem],
        match: Match | None = None,
    ) -> None:
        if self.dispatcher is None:
            return
        for item in items:
            await self.dispatcher.notify(
                NotificationEvent(event_type, item, match, recipient_ref=item.channel_ref)
            )

    # ── Enqueue ─────────────────────────────────────────────────────────

    def validate(self, request: EnqueueRequest) -> QueueItem:
        """Turn a raw request into a new pending item, or raise ValidationError."""
        kind = _parse_enum(ItemKind, request.kind, "kind")
        payment_type = _parse_enum(PaymentType, request.payment_type, "payment type")

        customer_id = request.customer_id.strip() if isinstance(request.customer_id, str) else ""
        if not customer_id:
            raise ValidationError("customer_id is required")

        amount = _parse_amount(request.amount)
        limit = self.payment_limits.get(payment_type.value)
        if limit is not None and amount > Decimal(str(limit)):
            raise ValidationError(
                f"Amount {amount} exceeds the {payment_type.value} limit of {limit}"
            )

        return QueueItem(
            kind=kind,
            customer_id=customer_id,
            amount=amount,
            payment_type=payment_type,
            priority=_validate_priority(request.priority),
            channel_ref=request.channel_ref or None,
            notes=request.notes,
        )

    async def enqueue(self, request: EnqueueRequest) -> QueueItem:
        """
        Validate and persist a new pending item, then try to match it.

        Returns the item as stored after the matching attempt (``matched``
        if a counterpart was found, otherwise ``pending``).
        """
        item = self.validate(request)
        added = HistoryEntry(
            event_type=HistoryEventType.ITEM_ADDED,
            item_id=item.id,
            payload=item.snapshot(),
        )
        (stored,), _ = await self.store.commit(items=[item], history=[added])
        logger.info(
            "Enqueued %s %s: %s %s for customer %s",
            stored.kind.value, stored.id, stored.amount,
            stored.payment_type.value, stored.customer_id,
        )
        await self._notify(NotificationType.ITEM_ADDED, [stored])

        await self._try_match(stored.id)
        return await self.store.get(stored.id)

    # ── Matching ────────────────────────────────────────────────────────

    async def _attempt_match(self, item_id: str, exclude_ids: Iterable[str] = ()) -> Match | None:
        exclude_ids = set(exclude_ids)

        async def attempt():
            item = await self.store.get(item_id)
            if item.state != ItemState.PENDING:
                return None
            opposing = await self.store.list_active(item.kind.opposite)
            candidate = find_best_match(
                item, opposing, now=utcnow(), weights=self.weights, exclude_ids=exclude_ids,
            )
            if candidate is None:
                return None

            withdrawal, deposit = candidate.withdrawal, candidate.deposit
            match = Match(
                withdrawal_id=withdrawal.id,
                deposit_id=deposit.id,
                score=candidate.score,
                amount=withdrawal.amount,
            )
            history = []
            for side in (withdrawal, deposit):
                previous = side.transition_to(ItemState.MATCHED)
                side.match_id = match.id
                history.append(
                    state_change(side.id, previous.value, side.state.value, match_id=match.id)
                )
            history.append(HistoryEntry(
                event_type=HistoryEventType.MATCH_PROPOSED,
                match_id=match.id,
                payload={
                    "withdrawal_id": withdrawal.id,
                    "deposit_id": deposit.id,
                    "score": match.score,
                    "breakdown": candidate.breakdown.as_dict(),
                },
            ))
            items, matches = await self.store.commit(
                items=[withdrawal, deposit], matches=[match], history=history,
            )
            return matches[0], items

        result = await self._retrying(f"match {item_id}", attempt)
        if result is None:
            logger.debug("No viable match for item %s", item_id)
            return None

        match, items = result
        logger.info(
            "Proposed match %s: withdrawal %s <-> deposit %s (score %.2f)",
            match.id, match.withdrawal_id, match.deposit_id, match.score,
        )
        await self._notify(NotificationType.MATCH_PROPOSED, items, match)
        return match

    async def _try_match(self, item_id: str, exclude_ids: Iterable[str] = ()) -> Match | None:
        """Matching after an already-committed change: a lost race leaves the item pending."""
        try:
            return await self._attempt_match(item_id, exclude_ids)
        except ConflictError:
            logger.warning("Matching for item %s gave up after conflicts; left pending", item_id)
            return None

    async def rematch_pending(self) -> list[Match]:
        """Re-attempt matching for every pending item, highest priority first."""
        pending = await self.store.list_items(ItemFilter(state=ItemState.PENDING))
        proposed = []
        for item in pending:
            match = await self._try_match(item.id)
            if match is not None:
                proposed.append(match)
        logger.info("Rematch sweep: %d pending items, %d matches proposed", len(pending), len(proposed))
        return proposed

    # ── Match lifecycle ─────────────────────────────────────────────────

    async def _move_match(
        self,
        match_id: str,
        match_state: MatchState,
        item_state: ItemState,
        event_type: HistoryEventType,
        reason: str | None = None,
    ) -> tuple[Match, list[QueueItem]]:
        async def attempt():
            match = await self.store.get_match(match_id)
            match.transition_to(match_state, reason=reason)
            withdrawal = await self.store.get(match.withdrawal_id)
            deposit = await self.store.get(match.deposit_id)

            history = []
            for side in (withdrawal, deposit):
                previous = side.transition_to(item_state)
                extra = {"reason": reason} if reason is not None else {}
                history.append(
                    state_change(side.id, previous.value, side.state.value, match_id=match.id, **extra)
                )
            payload = {"withdrawal_id": match.withdrawal_id, "deposit_id": match.deposit_id}
            if reason is not None:
                payload["reason"] = reason
            history.append(HistoryEntry(event_type=event_type, match_id=match.id, payload=payload))

            items, matches = await self.store.commit(
                items=[withdrawal, deposit], matches=[match], history=history,
            )
            return matches[0], items

        return await self._retrying(f"{match_state.value} match {match_id}", attempt)

    async def approve_match(self, match_id: str) -> Match:
        match, items = await self._move_match(
            match_id, MatchState.APPROVED, ItemState.PROCESSING, HistoryEventType.MATCH_APPROVED,
        )
        logger.info("Match %s approved", match_id)
        await self._notify(NotificationType.MATCH_APPROVED, items, match)
        return match

    async def reject_match(self, match_id: str, reason: str | None = None) -> Match:
        """
        Reject a proposed match and return both items to their queues.

        Each item then gets a fresh matching attempt that skips its former
        partner, so the rejected pairing cannot immediately re-form.
        """
        match, items = await self._move_match(
            match_id, MatchState.REJECTED, ItemState.PENDING, HistoryEventType.MATCH_REJECTED,
            reason=reason,
        )
        logger.info("Match %s rejected: %s", match_id, reason)
        await self._notify(NotificationType.MATCH_REJECTED, items, match)

        await self._try_match(match.withdrawal_id, exclude_ids={match.deposit_id})
        await self._try_match(match.deposit_id, exclude_ids={match.withdrawal_id})
        return match

    async def mark_completed(self, match_id: str) -> Match:
        """Settlement confirmed externally: approved match and both items complete."""
        match, items = await self._move_match(
            match_id, MatchState.COMPLETED, ItemState.COMPLETED, HistoryEventType.MATCH_COMPLETED,
        )
        logger.info("Match %s completed", match_id)
        await self._notify(NotificationType.MATCH_COMPLETED, items, match)
        return match

    # ── Item operations ─────────────────────────────────────────────────

    async def cancel(self, item_id: str, reason: str | None = None) -> QueueItem:
        """
        Cancel a pending or matched item.

        A matched item's partner goes back to pending, the match is
        rejected, and the partner gets a new matching attempt. Items that
        are already processing or terminal raise InvalidTransitionError.
        """
        async def attempt():
            item = await self.store.get(item_id)
            match_id = item.match_id
            previous = item.transition_to(ItemState.CANCELLED)

            extra = {"reason": reason} if reason is not None else {}
            history = [state_change(item.id, previous.value, item.state.value, match_id=match_id, **extra)]
            items, matches = [item], []

            if previous == ItemState.MATCHED and match_id:
                match = await self.store.get_match(match_id)
                match.transition_to(MatchState.REJECTED, reason=reason or "item cancelled")
                partner = await self.store.get(match.counterpart_of(item.id))
                partner_previous = partner.transition_to(ItemState.PENDING)
                history.append(state_change(
                    partner.id, partner_previous.value, partner.state.value,
                    match_id=match.id, reason="partner cancelled",
                ))
                history.append(HistoryEntry(
                    event_type=HistoryEventType.MATCH_REJECTED,
                    match_id=match.id,
                    payload={"reason": match.reason, "cancelled_item_id": item.id},
                ))
                items.append(partner)
                matches.append(match)

            return await self.store.commit(items=items, matches=matches, history=history)

        items, matches = await self._retrying(f"cancel {item_id}", attempt)
        cancelled = items[0]
        match = matches[0] if matches else None
        logger.info("Item %s cancelled (%s)", item_id, reason or "no reason given")

        await self._notify(NotificationType.ITEM_CANCELLED, [cancelled], match)
        if match is not None:
            partner = items[1]
            await self._notify(NotificationType.MATCH_REJECTED, [partner], match)
            await self._try_match(partner.id)
        return cancelled

    async def update_item(
        self, item_id: str, notes: str | None = None, priority: int | None = None,
    ) -> QueueItem:
        """Operator edit of ``notes`` / ``priority``; never touches state or amount."""
        if notes is None and priority is None:
            raise ValidationError("Nothing to update: provide notes and/or priority")
        if priority is not None:
            priority = _validate_priority(priority)

        async def attempt():
            item = await self.store.get(item_id)
            changes = {}
            if notes is not None and notes != item.notes:
                changes["notes"] = {"from": item.notes, "to": notes}
                item.notes = notes
            if priority is not None and priority != item.priority:
                if item.is_terminal:
                    raise ValidationError(
                        f"Cannot change priority of a {item.state.value} item"
                    )
                changes["priority"] = {"from": item.priority, "to": priority}
                item.priority = priority
            if not changes:
                return item
            item.updated_at = utcnow()
            entry = HistoryEntry(
                event_type=HistoryEventType.ITEM_UPDATED, item_id=item.id, payload=changes,
            )
            (stored,), _ = await self.store.commit(items=[item], history=[entry])
            return stored

        updated = await self._retrying(f"update {item_id}", attempt)
        logger.info("Item %s updated", item_id)
        return updated

    # ── Read-through ────────────────────────────────────────────────────

    async def get_item(self, item_id: str) -> QueueItem:
        return await self.store.get(item_id)

    async def get_match(self, match_id: str) -> Match:
        return await self.store.get_match(match_id)

    async def item_history(self, item_id: str) -> list[HistoryEntry]:
        await self.store.get(item_id)
        return await self.store.list_history(item_id=item_id)

    async def match_history(self, match_id: str) -> list[HistoryEntry]:
        await self.store.get_match(match_id)
        return await self.store.list_history(match_id=match_id)
