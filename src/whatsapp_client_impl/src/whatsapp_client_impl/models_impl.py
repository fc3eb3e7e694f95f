"""WhatsApp message models colocated with the bridge client."""

from __future__ import annotations

from typing import Any

from transport_client_api import models

# ---------------------------------------------------------------------------
# WhatsApp models
# ---------------------------------------------------------------------------


class WhatsAppInboundMessage(models.InboundMessage):
    """Inbound WhatsApp message as reported by the whatsapp-web.js bridge."""

    def __init__(self, *, sender: str, body: str, timestamp: int, message_type: str) -> None:
        """Create an inbound message payload."""
        self._sender = sender
        self._body = body
        self._timestamp = timestamp
        self._type = message_type

    @property
    def sender(self) -> str:
        """Get the chat identifier the message came from."""
        return self._sender

    @property
    def body(self) -> str:
        """Get the message text."""
        return self._body

    @property
    def timestamp(self) -> int:
        """Get the epoch-seconds timestamp."""
        return self._timestamp

    @property
    def type(self) -> str:
        """Get the whatsapp-web.js message type (chat, image, ptt, ...)."""
        return self._type

    def to_dict(self) -> dict[str, Any]:
        """Return this message as a JSON-serializable dict."""
        return {
            "from": self._sender,
            "body": self._body,
            "timestamp": self._timestamp,
            "type": self._type,
        }

    def __repr__(self) -> str:
        return f"WhatsAppInboundMessage(sender={self._sender!r}, type={self._type!r}, timestamp={self._timestamp})"


def inbound_message_from_payload(payload: dict[str, Any]) -> WhatsAppInboundMessage:
    """Build a WhatsAppInboundMessage from a bridge ``message`` line.

    Raises:
        ValueError: If the payload has no sender.

    """
    sender = payload.get("from")
    if not isinstance(sender, str) or not sender:
        raise ValueError("Bridge message is missing 'from'.")  # noqa: TRY003, EM101
    return WhatsAppInboundMessage(
        sender=sender,
        body=str(payload.get("body") or ""),
        timestamp=int(payload.get("timestamp") or 0),
        message_type=str(payload.get("message_type") or "chat"),
    )
