"""Gateway lifecycle state machine.

Transport lifecycle events move the gateway through
``starting -> authenticating -> ready -> disconnected``. The manager is the only
owner of that state; other components read readiness through ``is_ready``.
"""

from __future__ import annotations

import logging
import sys
from enum import Enum
from typing import TYPE_CHECKING, TextIO

import qrcode

from transport_client_api import LifecycleEvent

if TYPE_CHECKING:
    from collections.abc import Callable

    from transport_client_api import Client
    from whatsapp_gateway.relay import RelayAdapter

logger = logging.getLogger("whatsapp_gateway.lifecycle")


class GatewayState(str, Enum):
    """Connection state of the WhatsApp session."""

    STARTING = "starting"
    AUTHENTICATING = "authenticating"
    READY = "ready"
    DISCONNECTED = "disconnected"


def render_qr(code: str, out: TextIO | None = None) -> None:
    """Print a pairing code as a terminal QR code."""
    qr = qrcode.QRCode(border=1)
    qr.add_data(code)
    qr.make(fit=True)
    qr.print_ascii(out=out or sys.stdout, invert=True)


class LifecycleManager:
    """Owns the gateway state and reacts to transport lifecycle events."""

    def __init__(
        self,
        client: Client,
        relay: RelayAdapter | None = None,
        *,
        qr_renderer: Callable[[str], None] = render_qr,
    ) -> None:
        """Bind the manager to a transport client and, optionally, a relay adapter."""
        self._client = client
        self._relay = relay
        self._render_qr = qr_renderer
        self._state = GatewayState.STARTING
        self._attached = False

    @property
    def state(self) -> GatewayState:
        """Return the current gateway state."""
        return self._state

    @property
    def is_ready(self) -> bool:
        """Return True while the WhatsApp session is connected and authenticated."""
        return self._state is GatewayState.READY

    def attach(self) -> None:
        """Subscribe to the transport client's events (once)."""
        if self._attached:
            return
        self._client.on(LifecycleEvent.QR, self.on_qr)
        self._client.on(LifecycleEvent.AUTHENTICATED, self.on_authenticated)
        self._client.on(LifecycleEvent.READY, self.on_ready)
        self._client.on(LifecycleEvent.AUTH_FAILURE, self.on_auth_failure)
        self._client.on(LifecycleEvent.DISCONNECTED, self.on_disconnected)
        if self._relay is not None:
            self._client.on(LifecycleEvent.MESSAGE, self._relay.handle_message)
        self._attached = True

    async def start(self) -> None:
        """Subscribe to events and start the transport session."""
        self.attach()
        logger.info("Initializing WhatsApp client...")
        await self._client.initialize()

    async def shutdown(self) -> None:
        """Destroy the transport session if it is ready; otherwise leave it alone."""
        logger.info("Shutting down gateway...")
        if not self.is_ready:
            logger.info("WhatsApp client not ready; skipping destroy")
            return
        try:
            await self._client.destroy()
        except Exception:
            logger.exception("Failed to destroy WhatsApp client")

    # -----------------------------------------------------------------------
    # Event handlers
    # -----------------------------------------------------------------------

    async def on_qr(self, code: str) -> None:
        """Present the pairing code to the operator; waits for pairing indefinitely."""
        self._transition(GatewayState.AUTHENTICATING)
        logger.info("QR code received, scan it with WhatsApp:")
        self._render_qr(code)

    async def on_authenticated(self, _payload: object = None) -> None:
        """Log authentication; readiness only changes on ready."""
        logger.info("WhatsApp client authenticated")
        if self._state is GatewayState.STARTING:
            self._transition(GatewayState.AUTHENTICATING)

    async def on_ready(self, _payload: object = None) -> None:
        """Mark the gateway ready."""
        self._transition(GatewayState.READY)
        logger.info("WhatsApp client is ready")

    async def on_auth_failure(self, reason: str) -> None:
        """Log the failure; no automatic retry, re-pairing is manual."""
        logger.error("WhatsApp authentication failed: %s", reason)

    async def on_disconnected(self, reason: str) -> None:
        """Mark the gateway disconnected."""
        self._transition(GatewayState.DISCONNECTED)
        logger.warning("WhatsApp client disconnected: %s", reason)

    def _transition(self, new_state: GatewayState) -> None:
        if new_state is not self._state:
            logger.debug("Gateway state %s -> %s", self._state.value, new_state.value)
        self._state = new_state
