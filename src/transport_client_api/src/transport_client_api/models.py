"""Abstract schemas for messaging transport events."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

__all__ = [
    "InboundMessage",
    "LifecycleEvent",
]


class LifecycleEvent(str, Enum):
    """Events emitted by a transport client.

    Payloads handed to handlers:
        QR: pairing code (str) to present to the operator.
        AUTHENTICATED, READY: None.
        AUTH_FAILURE, DISCONNECTED: reason (str).
        MESSAGE: InboundMessage.
    """

    QR = "qr"
    AUTHENTICATED = "authenticated"
    READY = "ready"
    AUTH_FAILURE = "auth_failure"
    DISCONNECTED = "disconnected"
    MESSAGE = "message"


class InboundMessage(ABC):
    """Abstract message received from the messaging network."""

    @property
    @abstractmethod
    def sender(self) -> str:
        """Return the sender (chat) identifier, e.g. ``5511999999999@c.us``."""
        raise NotImplementedError

    @property
    @abstractmethod
    def body(self) -> str:
        """Return the message text."""
        raise NotImplementedError

    @property
    @abstractmethod
    def timestamp(self) -> int:
        """Return the message timestamp in epoch seconds."""
        raise NotImplementedError

    @property
    @abstractmethod
    def type(self) -> str:
        """Return the transport message type (``chat``, ``image``, ...)."""
        raise NotImplementedError

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable representation of the message."""
        raise NotImplementedError
