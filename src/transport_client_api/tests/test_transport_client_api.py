"""Tests for the transport_client_api abstractions.

These tests document how consumers should interact with the contract surface,
using mocks to exercise the expected signatures and data shapes.
"""

from typing import cast
from unittest.mock import AsyncMock, Mock

import pytest

import transport_client_api
from transport_client_api import Client, InboundMessage, LifecycleEvent, TransportError


def _make_inbound(sender: str = "555@c.us", body: str = "oi") -> InboundMessage:
    """Create a mock InboundMessage consistent with the contract."""
    inbound = Mock(spec=InboundMessage)
    inbound.sender = sender
    inbound.body = body
    inbound.timestamp = 1000
    inbound.type = "chat"
    inbound.to_dict.return_value = {"from": sender, "body": body, "timestamp": 1000, "type": "chat"}
    return cast("InboundMessage", inbound)


@pytest.mark.asyncio
async def test_send_message_contract() -> None:
    """Verifies and documents the contract for Client.send_message."""
    # ARRANGE
    mock_client = Mock(spec=Client)
    mock_client.send_message = AsyncMock(return_value=None)

    # ACT
    result = await mock_client.send_message("555@c.us", "olá")

    # ASSERT
    mock_client.send_message.assert_awaited_once_with("555@c.us", "olá")
    assert result is None


@pytest.mark.asyncio
async def test_send_message_failure_is_transport_error() -> None:
    """Delivery failures surface as TransportError, a RuntimeError subclass."""
    # ARRANGE
    mock_client = Mock(spec=Client)
    mock_client.send_message = AsyncMock(side_effect=TransportError("not delivered"))

    # ACT / ASSERT
    with pytest.raises(RuntimeError, match="not delivered"):
        await mock_client.send_message("555@c.us", "olá")


def test_handlers_register_per_event() -> None:
    """Handlers are registered against LifecycleEvent members."""
    # ARRANGE
    mock_client = Mock(spec=Client)
    handler = AsyncMock()

    # ACT
    mock_client.on(LifecycleEvent.MESSAGE, handler)

    # ASSERT
    mock_client.on.assert_called_once_with(LifecycleEvent.MESSAGE, handler)


def test_lifecycle_event_values_match_wire_names() -> None:
    """Event values are the names used on the wire by transport bridges."""
    assert [event.value for event in LifecycleEvent] == [
        "qr",
        "authenticated",
        "ready",
        "auth_failure",
        "disconnected",
        "message",
    ]
    assert LifecycleEvent("ready") is LifecycleEvent.READY


def test_inbound_message_serializes() -> None:
    """InboundMessage exposes its fields and a dict form."""
    inbound = _make_inbound()

    assert inbound.sender == "555@c.us"
    assert inbound.to_dict() == {"from": "555@c.us", "body": "oi", "timestamp": 1000, "type": "chat"}


def test_get_client_factory_contract(monkeypatch: pytest.MonkeyPatch) -> None:
    """Verifies the transport_client_api.get_client factory can be rebound by implementations."""
    # ARRANGE
    mock_client = Mock(spec=Client)
    mock_factory = Mock(return_value=mock_client)
    monkeypatch.setattr(transport_client_api, "get_client", mock_factory, raising=False)

    # ACT
    result = transport_client_api.get_client()

    # ASSERT
    mock_factory.assert_called_once_with()
    assert result is mock_client


def test_default_get_client_is_unbound() -> None:
    """Without an implementation the factory raises NotImplementedError."""
    from transport_client_api.client import get_client

    with pytest.raises(NotImplementedError):
        get_client()


def test_client_cannot_instantiate_directly() -> None:
    """Client remains abstract until an implementation provides its methods."""
    with pytest.raises(TypeError):
        Client()  # type: ignore[abstract]
