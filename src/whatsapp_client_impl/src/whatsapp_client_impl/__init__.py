"""Public exports for the WhatsApp client implementation package."""

from whatsapp_client_impl.bridge_impl import WhatsAppClient, get_client_impl
from whatsapp_client_impl.bridge_impl import register as _register_client
from whatsapp_client_impl.models_impl import WhatsAppInboundMessage

__all__ = ["WhatsAppClient", "WhatsAppInboundMessage", "get_client_impl", "register"]


def register() -> None:
    """Register the WhatsApp client implementation."""
    _register_client()


register()
