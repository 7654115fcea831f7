"""
Notification channels — Telegram Bot API delivery and a logging fallback.

Channels implement ``async notify(event)`` and raise on failure; the
dispatcher turns failures into ``notification_failed`` history entries.
Message bodies use Telegram's legacy Markdown.
"""

import logging

import httpx

from p2p_queue.config import settings

logger = logging.getLogger(__name__)


class NotificationDeliveryError(Exception):
    """Raised when a channel could not hand a message to its transport."""
    pass


# ---------------------------------------------------------------------------
# Message templates
# ---------------------------------------------------------------------------

_HEADLINES = {
    "item_added": "*New {kind} added to P2P queue*",
    "match_proposed": "*Match found for your {kind}*",
    "match_approved": "*Match approved*",
    "match_rejected": "*Match rejected*",
    "item_cancelled": "*{kind_title} cancelled*",
    "match_completed": "*P2P transfer completed*",
}

_FOOTERS = {
    "item_added": "_Waiting for a {opposite} match..._",
    "match_proposed": "_Awaiting operator approval._",
    "match_approved": "_Transfer is now processing._",
    "match_rejected": "_Your request is back in the queue._",
    "item_cancelled": "_This request will not be matched._",
    "match_completed": "_Thank you._",
}


def format_message(payload: dict) -> str:
    """Render an event payload (``NotificationEvent.to_dict()``) as Markdown."""
    event_type = payload["type"]
    item = payload["item"]
    match = payload.get("match")
    kind = item["kind"]
    opposite = "deposit" if kind == "withdrawal" else "withdrawal"

    headline = _HEADLINES.get(event_type, "*P2P queue update*")
    lines = [
        headline.format(kind=kind, kind_title=kind.capitalize()),
        "",
        f"*Amount:* ${item['amount']}",
        f"*Payment Type:* {item['payment_type']}",
        f"*Priority:* {item['priority']}",
        f"*Customer:* {item['customer_id']}",
        f"*Queue ID:* `{item['id']}`",
    ]
    if match is not None:
        lines.append(f"*Match ID:* `{match['id']}`")
        lines.append(f"*Match Score:* {match['score']}")
        if match.get("reason") and event_type in ("match_rejected", "item_cancelled"):
            lines.append(f"*Reason:* {match['reason']}")
    footer = _FOOTERS.get(event_type)
    if footer:
        lines.extend(["", footer.format(opposite=opposite)])
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------


class LoggingNotificationChannel:
    """Development channel: writes each notification to the log."""

    async def notify(self, event) -> None:
        logger.info(
            "Notification %s -> %s (item %s)",
            event.type.value, event.recipient_ref or "<default>", event.item.id,
        )


class TelegramNotificationService:
    """Delivers notifications through the Telegram Bot API ``sendMessage``."""

    def __init__(
        self,
        bot_token: str | None = None,
        default_chat_id: str | None = None,
        api_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        self.bot_token = settings.TELEGRAM_BOT_TOKEN if bot_token is None else bot_token
        self.default_chat_id = (
            settings.TELEGRAM_DEFAULT_CHAT_ID if default_chat_id is None else default_chat_id
        )
        self.api_url = (api_url or settings.TELEGRAM_API_URL).rstrip("/")
        self.timeout = timeout
        self._client = client

    def resolve_chat_id(self, recipient_ref: str | None) -> str | None:
        return recipient_ref or self.default_chat_id or None

    async def send_message(self, chat_id: str, text: str) -> dict:
        """POST to ``sendMessage``; raises NotificationDeliveryError on API errors."""
        if not self.bot_token:
            raise NotificationDeliveryError("TELEGRAM_BOT_TOKEN is not configured")

        url = f"{self.api_url}/bot{self.bot_token}/sendMessage"
        body = {"chat_id": chat_id, "text": text, "parse_mode": "Markdown"}

        if self._client is not None:
            resp = await self._client.post(url, json=body)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=body)

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.status_code >= 400 or not data.get("ok"):
            description = data.get("description") or f"HTTP {resp.status_code}"
            raise NotificationDeliveryError(f"Telegram sendMessage failed: {description}")
        return data

    async def deliver(self, payload: dict) -> dict:
        """Send one serialized event to its recipient chat."""
        chat_id = self.resolve_chat_id(payload.get("recipient_ref"))
        if chat_id is None:
            raise NotificationDeliveryError(
                f"No Telegram chat for item {payload['item']['id']} and no default chat configured"
            )
        result = await self.send_message(chat_id, format_message(payload))
        logger.info("Telegram %s sent to chat %s", payload["type"], chat_id)
        return result

    async def notify(self, event) -> None:
        await self.deliver(event.to_dict())


# Module-level channel override (for tests)
_channel = None


def get_notification_channel():
    """Return the channel named by ``NOTIFICATION_CHANNEL``."""
    if _channel is not None:
        return _channel
    name = settings.NOTIFICATION_CHANNEL.lower()
    if name == "telegram":
        return TelegramNotificationService()
    if name == "celery":
        from p2p_queue.tasks.notification_tasks import CeleryNotificationChannel
        return CeleryNotificationChannel()
    return LoggingNotificationChannel()


def set_notification_channel(channel) -> None:
    """Override the notification channel (for testing)."""
    global _channel
    _channel = channel
