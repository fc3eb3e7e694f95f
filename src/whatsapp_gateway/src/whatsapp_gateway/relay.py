"""Relay inbound WhatsApp messages to the orchestrator and send its replies back."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import requests

from whatsapp_gateway.models import IncomingMessage, OrchestratorReply

if TYPE_CHECKING:
    from transport_client_api import Client, InboundMessage

logger = logging.getLogger("whatsapp_gateway.relay")

GROUP_MARKER = "@g.us"
BROADCAST_MARKER = "status@broadcast"
PROCESS_MESSAGE_PATH = "/process-message"
FALLBACK_REPLY = "Erro temporário. Tente novamente."
DEFAULT_TIMEOUT_SECONDS = 60.0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def is_relayable(sender: str) -> bool:
    """Return False for group chats and the status broadcast channel."""
    return GROUP_MARKER not in sender and BROADCAST_MARKER not in sender


def process_message_url(base_url: str) -> str:
    """Build the orchestrator's process-message endpoint from its base URL."""
    return f"{base_url.rstrip('/')}{PROCESS_MESSAGE_PATH}"


def _send_to_orchestrator(
    url: str,
    message: IncomingMessage,
    *,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> OrchestratorReply:
    """Post the inbound message to the orchestrator and parse its reply."""
    response = requests.post(url, json=message.to_payload(), timeout=timeout_seconds)
    response.raise_for_status()
    return OrchestratorReply.model_validate(response.json())


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class RelayAdapter:
    """Turns one inbound message into at most one orchestrator call and one reply.

    Attributes:
        _client: Transport used for replies.
        _url: Orchestrator process-message endpoint.
        _timeout: Upper bound for the orchestrator call, in seconds.

    """

    def __init__(
        self,
        client: Client,
        orchestrator_url: str,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        """Bind the adapter to a transport client and an orchestrator base URL."""
        self._client = client
        self._url = process_message_url(orchestrator_url)
        self._timeout = timeout_seconds

    @property
    def url(self) -> str:
        """Return the orchestrator endpoint messages are posted to."""
        return self._url

    async def handle_message(self, inbound: InboundMessage) -> None:
        """Forward a direct message to the orchestrator and relay the reply.

        Never raises: orchestrator and reply failures trigger a fallback reply,
        and a failed fallback is only logged.

        Args:
            inbound: Message received from the transport.

        Returns:
            None.

        """
        sender = inbound.sender
        if not is_relayable(sender):
            return

        logger.info("Message from %s: %s", sender, inbound.body)
        try:
            incoming = IncomingMessage.model_validate(inbound.to_dict())
            # requests only bounds connect and each read; cap the whole call here.
            reply_obj = await asyncio.wait_for(
                asyncio.to_thread(
                    _send_to_orchestrator,
                    self._url,
                    incoming,
                    timeout_seconds=self._timeout,
                ),
                timeout=self._timeout,
            )
            if reply_obj.reply:
                await self._client.send_message(sender, reply_obj.reply)
                logger.info("Reply sent to %s: %s", sender, reply_obj.reply)
        except Exception:
            logger.exception("Failed to process message from %s", sender)
            await self._send_fallback(sender)

    async def _send_fallback(self, sender: str) -> None:
        try:
            await self._client.send_message(sender, FALLBACK_REPLY)
        except Exception:
            logger.exception("Failed to send error reply to %s", sender)
