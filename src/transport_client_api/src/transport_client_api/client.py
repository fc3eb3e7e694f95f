"""Abstract interfaces for messaging transports."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from transport_client_api.models import LifecycleEvent

__all__ = ["Client", "EventHandler", "TransportError", "get_client"]

EventHandler = Callable[[Any], Awaitable[None]]


class TransportError(RuntimeError):
    """Raised when the transport cannot start a session or deliver a message."""


class Client(ABC):
    """The contract for messaging transport clients."""

    @abstractmethod
    def on(self, event: LifecycleEvent, handler: EventHandler) -> None:
        """Register an async handler for a lifecycle event.

        Args:
            event: Event to subscribe to.
            handler: Coroutine function called with the event payload.

        """
        raise NotImplementedError

    @abstractmethod
    async def initialize(self) -> None:
        """Start the transport session.

        Returns once the session has been started; lifecycle events
        (qr, authenticated, ready, ...) are delivered asynchronously afterwards.

        """
        raise NotImplementedError

    @abstractmethod
    async def send_message(self, to: str, text: str) -> None:
        """Send a text message.

        Safe to call concurrently; two sends issued back-to-back may complete
        in any order.

        Args:
            to: Recipient chat identifier.
            text: Message body.

        Raises:
            TransportError: If the message could not be delivered to the network.

        """
        raise NotImplementedError

    @abstractmethod
    async def destroy(self) -> None:
        """Close the session and release its resources."""
        raise NotImplementedError


def get_client() -> Client:
    """Return the default transport client implementation.

    Returns:
        Client implementation.

    """
    raise NotImplementedError
