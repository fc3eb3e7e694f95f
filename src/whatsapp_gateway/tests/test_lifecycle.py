"""Unit tests for the gateway lifecycle state machine."""

from __future__ import annotations

import io
import logging
from unittest.mock import AsyncMock, Mock, call

import pytest
from whatsapp_gateway.lifecycle import GatewayState, LifecycleManager, render_qr

from transport_client_api import Client, LifecycleEvent, TransportError


def _client() -> Mock:
    client = Mock(spec=Client)
    client.initialize = AsyncMock()
    client.destroy = AsyncMock()
    return client


def _manager(client: Mock | None = None, relay: Mock | None = None) -> tuple[LifecycleManager, Mock, Mock]:
    client = client or _client()
    renderer = Mock()
    return LifecycleManager(client, relay, qr_renderer=renderer), client, renderer


class TestLifecycleState:
    """State transitions driven by transport events."""

    def test_starts_not_ready(self) -> None:
        """A fresh manager is starting and not ready."""
        manager, _client_mock, _renderer = _manager()

        assert manager.state is GatewayState.STARTING
        assert manager.is_ready is False

    @pytest.mark.asyncio
    async def test_qr_renders_code_and_waits_for_pairing(self) -> None:
        """QR events render the pairing code and move to authenticating."""
        manager, _client_mock, renderer = _manager()

        await manager.on_qr("2@pairing-code")

        renderer.assert_called_once_with("2@pairing-code")
        assert manager.state is GatewayState.AUTHENTICATING
        assert manager.is_ready is False

    @pytest.mark.asyncio
    async def test_full_session_lifecycle(self) -> None:
        """authenticated -> ready -> disconnected -> ready toggles readiness."""
        manager, _client_mock, _renderer = _manager()

        await manager.on_authenticated(None)
        assert manager.state is GatewayState.AUTHENTICATING
        assert manager.is_ready is False

        await manager.on_ready(None)
        assert manager.state is GatewayState.READY
        assert manager.is_ready is True

        await manager.on_authenticated(None)
        assert manager.state is GatewayState.READY

        await manager.on_disconnected("NAVIGATION")
        assert manager.state is GatewayState.DISCONNECTED
        assert manager.is_ready is False

        await manager.on_ready(None)
        assert manager.is_ready is True

    @pytest.mark.asyncio
    async def test_auth_failure_is_logged_without_retry(self, caplog: pytest.LogCaptureFixture) -> None:
        """Authentication failures are logged; state stays put and nothing restarts."""
        manager, client, _renderer = _manager()
        await manager.on_qr("code")

        with caplog.at_level(logging.ERROR, logger="whatsapp_gateway.lifecycle"):
            await manager.on_auth_failure("session expired")

        assert manager.state is GatewayState.AUTHENTICATING
        assert manager.is_ready is False
        assert "session expired" in caplog.text
        client.initialize.assert_not_awaited()


class TestLifecycleWiring:
    """Subscription, startup and shutdown."""

    def test_attach_registers_handlers_once(self) -> None:
        """attach subscribes each lifecycle event and the relay, only once."""
        relay = Mock()
        manager, client, _renderer = _manager(relay=relay)

        manager.attach()
        manager.attach()

        assert client.on.call_args_list == [
            call(LifecycleEvent.QR, manager.on_qr),
            call(LifecycleEvent.AUTHENTICATED, manager.on_authenticated),
            call(LifecycleEvent.READY, manager.on_ready),
            call(LifecycleEvent.AUTH_FAILURE, manager.on_auth_failure),
            call(LifecycleEvent.DISCONNECTED, manager.on_disconnected),
            call(LifecycleEvent.MESSAGE, relay.handle_message),
        ]

    def test_attach_without_relay_skips_messages(self) -> None:
        """Without a relay adapter no message handler is registered."""
        manager, client, _renderer = _manager()

        manager.attach()

        registered = [args[0] for args, _ in client.on.call_args_list]
        assert LifecycleEvent.MESSAGE not in registered

    @pytest.mark.asyncio
    async def test_start_initializes_client(self) -> None:
        """start subscribes and then initializes the transport."""
        manager, client, _renderer = _manager()

        await manager.start()

        assert client.on.called
        client.initialize.assert_awaited_once_with()

    @pytest.mark.asyncio
    async def test_start_propagates_transport_failure(self) -> None:
        """A transport that cannot start fails startup."""
        client = _client()
        client.initialize.side_effect = TransportError("node not found")
        manager, _client_mock, _renderer = _manager(client)

        with pytest.raises(TransportError, match="node not found"):
            await manager.start()

    @pytest.mark.asyncio
    async def test_shutdown_destroys_ready_client(self) -> None:
        """An orderly destroy happens only when the session is ready."""
        manager, client, _renderer = _manager()
        await manager.on_ready(None)

        await manager.shutdown()

        client.destroy.assert_awaited_once_with()

    @pytest.mark.asyncio
    async def test_shutdown_skips_destroy_when_not_ready(self) -> None:
        """Without a ready session shutdown leaves the transport alone."""
        manager, client, _renderer = _manager()
        await manager.on_qr("code")

        await manager.shutdown()

        client.destroy.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_shutdown_logs_destroy_failure(self, caplog: pytest.LogCaptureFixture) -> None:
        """Destroy failures are logged and do not escape shutdown."""
        client = _client()
        client.destroy.side_effect = TransportError("browser gone")
        manager, _client_mock, _renderer = _manager(client)
        await manager.on_ready(None)

        with caplog.at_level(logging.ERROR, logger="whatsapp_gateway.lifecycle"):
            await manager.shutdown()

        assert "Failed to destroy WhatsApp client" in caplog.text


def test_render_qr_prints_ascii_code() -> None:
    """render_qr writes a multi-line terminal QR code."""
    out = io.StringIO()

    render_qr("2@ABCDEF,ghijkl,mnopqr==", out=out)

    lines = out.getvalue().splitlines()
    assert len(lines) > 10
    assert len({len(line) for line in lines if line}) == 1
