"""Public export surface for ``transport_client_api``."""

from transport_client_api.client import Client, EventHandler, TransportError, get_client
from transport_client_api.models import InboundMessage, LifecycleEvent

__all__ = [
    "Client",
    "EventHandler",
    "InboundMessage",
    "LifecycleEvent",
    "TransportError",
    "get_client",
]
