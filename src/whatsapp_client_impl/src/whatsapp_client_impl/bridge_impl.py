"""WhatsApp Client Implementation.

Concrete transport_client_api.Client backed by a whatsapp-web.js bridge process. The bridge
owns the browser session (QR pairing, LocalAuth persistence, encryption); this client talks
to it with newline-delimited JSON over stdin/stdout and turns bridge lines into lifecycle
events.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
import os
import shlex
from collections import defaultdict
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence

    from transport_client_api import EventHandler

import transport_client_api
from transport_client_api import Client, LifecycleEvent, TransportError
from whatsapp_client_impl.models_impl import inbound_message_from_payload

logger = logging.getLogger("whatsapp_client_impl")

BRIDGE_SCRIPT = Path(__file__).resolve().parent / "bridge" / "bridge.js"
DEFAULT_SESSION_DIR = ".wwebjs_auth"
DEFAULT_SEND_TIMEOUT_SECONDS = 30.0
DESTROY_TIMEOUT_SECONDS = 10.0
STREAM_LIMIT_BYTES = 4 * 1024 * 1024
_FALSE_VALUES = {"0", "false", "no", "off"}

# ---------------------------------------------------------------------------
# Client implementation
# ---------------------------------------------------------------------------


class WhatsAppClient(Client):
    """Concrete transport_client_api.Client that drives the whatsapp-web.js bridge.

    Configuration:
        - WHATSAPP_BRIDGE_COMMAND (optional, defaults to ``node <package>/bridge/bridge.js``)
        - WHATSAPP_SESSION_DIR (optional, defaults to .wwebjs_auth)
        - WHATSAPP_HEADLESS (optional, defaults to true; false opens a visible browser)
        - WHATSAPP_SEND_TIMEOUT_SECONDS (optional, defaults to 30)

    Attributes:
        _command: Bridge command line.
        _pending: Futures for in-flight sends, keyed by request id.
        _handlers: Registered handlers per lifecycle event.

    """

    def __init__(
        self,
        command: Sequence[str] | None = None,
        *,
        session_dir: str | None = None,
        headless: bool | None = None,
        send_timeout_seconds: float | None = None,
    ) -> None:
        """Initialize the client, resolving bridge settings from the environment."""
        raw_command = os.environ.get("WHATSAPP_BRIDGE_COMMAND")
        if command is not None:
            self._command = list(command)
        elif raw_command:
            self._command = shlex.split(raw_command)
        else:
            self._command = ["node", str(BRIDGE_SCRIPT)]
        self._session_dir = session_dir or os.environ.get("WHATSAPP_SESSION_DIR", DEFAULT_SESSION_DIR)
        self._headless = _env_flag("WHATSAPP_HEADLESS", default=True) if headless is None else headless
        if send_timeout_seconds is None:
            send_timeout_seconds = _env_float("WHATSAPP_SEND_TIMEOUT_SECONDS", DEFAULT_SEND_TIMEOUT_SECONDS)
        self._send_timeout = send_timeout_seconds
        self._handlers: dict[LifecycleEvent, list[EventHandler]] = defaultdict(list)
        self._process: asyncio.subprocess.Process | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._stderr_task: asyncio.Task[None] | None = None
        self._pending: dict[str, asyncio.Future[None]] = {}
        self._handler_tasks: set[asyncio.Task[None]] = set()
        self._ids = itertools.count(1)
        self._closing = False

    @property
    def command(self) -> list[str]:
        """Return the bridge command line."""
        return list(self._command)

    @property
    def headless(self) -> bool:
        """Return whether the bridge runs the browser headless."""
        return self._headless

    def on(self, event: LifecycleEvent, handler: EventHandler) -> None:
        """Register an async handler for a lifecycle event."""
        self._handlers[event].append(handler)

    async def initialize(self) -> None:
        """Spawn the bridge process and start reading its output.

        Raises:
            TransportError: If the bridge is already running or cannot be started.

        """
        if self._process is not None and self._process.returncode is None:
            raise TransportError("WhatsApp bridge is already running.")  # noqa: TRY003, EM101
        env = os.environ.copy()
        env["WHATSAPP_SESSION_DIR"] = self._session_dir
        env["WHATSAPP_HEADLESS"] = "true" if self._headless else "false"
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self._command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                limit=STREAM_LIMIT_BYTES,
                # Own session: terminal Ctrl-C must not reach the bridge.
                start_new_session=True,
            )
        except OSError as exc:
            msg = f"Could not start WhatsApp bridge {self._command!r}: {exc}"
            raise TransportError(msg) from exc
        self._closing = False
        self._reader_task = asyncio.create_task(self._read_stdout(self._process))
        self._stderr_task = asyncio.create_task(self._read_stderr(self._process))
        logger.info("WhatsApp bridge started (pid=%s, headless=%s)", self._process.pid, self._headless)

    async def send_message(self, to: str, text: str) -> None:
        """Ask the bridge to send a text message and wait for its acknowledgement.

        Args:
            to: Recipient chat identifier.
            text: Message body.

        Raises:
            TransportError: If the bridge rejects the send, dies, or does not answer in time.

        """
        request_id = str(next(self._ids))
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._write({"type": "send", "id": request_id, "to": to, "text": text})
            await asyncio.wait_for(future, timeout=self._send_timeout)
        except TimeoutError as exc:
            msg = f"Timed out waiting for delivery to {to}."
            raise TransportError(msg) from exc
        finally:
            self._pending.pop(request_id, None)

    async def destroy(self) -> None:
        """Ask the bridge to close the browser session, then stop the process."""
        process = self._process
        if process is None:
            return
        self._closing = True
        if process.returncode is None:
            try:
                await self._write({"type": "destroy"})
            except TransportError:
                logger.warning("WhatsApp bridge input already closed")
            try:
                await asyncio.wait_for(process.wait(), timeout=DESTROY_TIMEOUT_SECONDS)
            except TimeoutError:
                logger.warning("WhatsApp bridge did not exit in time; terminating")
                process.terminate()
                await process.wait()
        for task in (self._reader_task, self._stderr_task):
            if task is None:
                continue
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._fail_pending("WhatsApp bridge was destroyed.")
        self._process = None
        self._reader_task = None
        self._stderr_task = None
        logger.info("WhatsApp bridge stopped")

    # -----------------------------------------------------------------------
    # Bridge protocol
    # -----------------------------------------------------------------------

    async def _write(self, payload: dict[str, Any]) -> None:
        process = self._process
        if process is None or process.returncode is not None or process.stdin is None:
            raise TransportError("WhatsApp bridge is not running.")  # noqa: TRY003, EM101
        process.stdin.write(f"{json.dumps(payload)}\n".encode())
        try:
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            raise TransportError("WhatsApp bridge closed its input.") from exc  # noqa: TRY003, EM101

    async def _read_stdout(self, process: asyncio.subprocess.Process) -> None:
        if process.stdout is None:
            return
        while True:
            try:
                line = await process.stdout.readline()
            except ValueError:
                logger.warning("Skipping bridge line longer than %d bytes", STREAM_LIMIT_BYTES)
                continue
            if not line:
                break
            await self._handle_line(line)
        returncode = await process.wait()
        self._fail_pending("WhatsApp bridge exited.")
        if not self._closing:
            logger.warning("WhatsApp bridge exited with code %s", returncode)
            await self._emit(LifecycleEvent.DISCONNECTED, "bridge_exited")

    async def _read_stderr(self, process: asyncio.subprocess.Process) -> None:
        if process.stderr is None:
            return
        while True:
            line = await process.stderr.readline()
            if not line:
                break
            text = line.decode(errors="ignore").strip()
            if text:
                logger.warning("[bridge] %s", text)

    async def _handle_line(self, raw: bytes) -> None:
        """Decode one bridge line and dispatch it."""
        try:
            data = json.loads(raw.decode("utf-8"))
        except ValueError:
            logger.warning("Ignoring undecodable bridge line: %r", raw[:200])
            return
        if not isinstance(data, dict):
            logger.warning("Ignoring non-object bridge line: %r", data)
            return

        line_type = data.get("type")
        if line_type == "ack":
            self._resolve_ack(data)
            return
        try:
            event = LifecycleEvent(line_type)
        except ValueError:
            logger.debug("Ignoring bridge line of type %r", line_type)
            return

        if event is LifecycleEvent.MESSAGE:
            try:
                inbound = inbound_message_from_payload(data)
            except (TypeError, ValueError):
                logger.warning("Ignoring malformed message line: %r", data)
                return
            for handler in list(self._handlers[event]):
                self._spawn(handler, inbound)
            return

        await self._emit(event, _event_payload(event, data))

    def _resolve_ack(self, data: dict[str, Any]) -> None:
        future = self._pending.get(str(data.get("id")))
        if future is None or future.done():
            return
        if data.get("ok"):
            future.set_result(None)
        else:
            future.set_exception(TransportError(str(data.get("error") or "Send rejected by WhatsApp bridge.")))

    def _fail_pending(self, reason: str) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(TransportError(reason))

    # -----------------------------------------------------------------------
    # Handler dispatch
    # -----------------------------------------------------------------------

    async def _emit(self, event: LifecycleEvent, payload: object) -> None:
        """Run lifecycle handlers inline, in registration order."""
        for handler in list(self._handlers[event]):
            try:
                await handler(payload)
            except Exception:
                logger.exception("Handler for %s failed", event.value)

    def _spawn(self, handler: EventHandler, payload: object) -> None:
        """Run a message handler as its own task so the reader keeps draining acks."""
        task = asyncio.ensure_future(handler(payload))
        self._handler_tasks.add(task)
        task.add_done_callback(self._handler_done)

    def _handler_done(self, task: asyncio.Task[None]) -> None:
        self._handler_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Message handler failed", exc_info=exc)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def get_client_impl() -> WhatsAppClient:
    """Return a new WhatsAppClient using env defaults."""
    return WhatsAppClient()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _event_payload(event: LifecycleEvent, data: dict[str, Any]) -> str | None:
    if event is LifecycleEvent.QR:
        return str(data.get("data") or "")
    if event in (LifecycleEvent.AUTH_FAILURE, LifecycleEvent.DISCONNECTED):
        return str(data.get("reason") or "unknown")
    return None


def _env_flag(name: str, *, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() not in _FALSE_VALUES


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as exc:
        msg = f"{name} must be a number."
        raise RuntimeError(msg) from exc


# ---------------------------------------------------------------------------
# Factory registration
# ---------------------------------------------------------------------------


def register() -> None:
    """Bind the WhatsApp client factory into transport_client_api.get_client."""
    transport_client_api.get_client = get_client_impl
