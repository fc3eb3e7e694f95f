"""FastAPI gateway between a WhatsApp account and the orchestrator.

Boots the WhatsApp transport, relays inbound direct messages to the orchestrator,
and exposes health/status/send endpoints. SIGINT/SIGTERM are handled by uvicorn,
which runs the lifespan shutdown before the process exits.
"""

from __future__ import annotations

import gc
import logging
import resource
import signal
import sys
import time
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

import transport_client_api
import whatsapp_client_impl  # noqa: F401  # ensure transport implementation registers itself
from whatsapp_gateway import config
from whatsapp_gateway.lifecycle import LifecycleManager
from whatsapp_gateway.models import (
    ErrorResponse,
    HealthResponse,
    SendMessageRequest,
    SendMessageResponse,
    StatusResponse,
)
from whatsapp_gateway.relay import RelayAdapter

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable
    from types import FrameType

    from transport_client_api import Client

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("whatsapp_gateway")

STARTED_AT = time.monotonic()
NOT_READY_ERROR = "Cliente WhatsApp não está pronto"
MISSING_FIELDS_ERROR = 'Campos "to" e "message" são obrigatórios'
SEND_SUCCESS_MESSAGE = "Mensagem enviada com sucesso"
INTERNAL_ERROR = "Erro interno do servidor"

router = APIRouter()


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Return liveness plus the WhatsApp readiness flag."""
    return HealthResponse(status="ok", whatsapp_ready=_is_ready(request), timestamp=_timestamp())


@router.post(
    "/send-message",
    response_model=SendMessageResponse,
    responses={
        HTTPStatus.BAD_REQUEST.value: {"model": ErrorResponse},
        HTTPStatus.INTERNAL_SERVER_ERROR.value: {"model": ErrorResponse},
        HTTPStatus.SERVICE_UNAVAILABLE.value: {"model": ErrorResponse},
    },
    openapi_extra={
        "requestBody": {"content": {"application/json": {"schema": SendMessageRequest.model_json_schema()}}},
    },
)
async def send_message(request: Request) -> SendMessageResponse | JSONResponse:
    """Send a WhatsApp message on behalf of an operator.

    Readiness is checked before the body is parsed; an unusable body answers 400.
    """
    if not _is_ready(request):
        return _error(HTTPStatus.SERVICE_UNAVAILABLE, NOT_READY_ERROR)
    payload = await _read_send_request(request)
    if payload is None or not payload.to or not payload.message:
        return _error(HTTPStatus.BAD_REQUEST, MISSING_FIELDS_ERROR)

    client: Client = request.app.state.client
    try:
        await client.send_message(payload.to, payload.message)
    except Exception:
        logger.exception("Failed to send message to %s", payload.to)
        return _error(HTTPStatus.INTERNAL_SERVER_ERROR, INTERNAL_ERROR)
    return SendMessageResponse(success=True, message=SEND_SUCCESS_MESSAGE)


@router.get("/status", response_model=StatusResponse)
async def status(request: Request) -> StatusResponse:
    """Return process status: connection state, uptime and memory usage."""
    return StatusResponse(
        service=config.SERVICE_NAME,
        status="connected" if _is_ready(request) else "disconnected",
        uptime=time.monotonic() - STARTED_AT,
        memory=_memory_usage(),
        timestamp=_timestamp(),
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _is_ready(request: Request) -> bool:
    lifecycle: LifecycleManager | None = getattr(request.app.state, "lifecycle", None)
    return lifecycle is not None and lifecycle.is_ready


async def _read_send_request(request: Request) -> SendMessageRequest | None:
    """Parse the send body; anything that is not a {to, message} object yields None."""
    try:
        return SendMessageRequest.model_validate(await request.json())
    except (ValueError, ValidationError):
        return None


def _error(status_code: HTTPStatus, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code.value, content=ErrorResponse(error=message).model_dump())


def _timestamp() -> str:
    """Return the current UTC time as ISO8601 with milliseconds and a Z suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _memory_usage() -> dict[str, Any]:
    usage = resource.getrusage(resource.RUSAGE_SELF)
    # ru_maxrss is reported in kilobytes on Linux.
    return {"max_rss_kb": usage.ru_maxrss, "gc_counts": list(gc.get_count())}


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def create_app(client_factory: Callable[[], Client] | None = None) -> FastAPI:
    """Build the gateway application.

    Args:
        client_factory: Transport client factory; defaults to ``transport_client_api.get_client``.

    Returns:
        Configured FastAPI application.

    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        client = (client_factory or transport_client_api.get_client)()
        relay = RelayAdapter(
            client,
            config.ORCHESTRATOR_URL,
            timeout_seconds=config.ORCHESTRATOR_TIMEOUT_SECONDS,
        )
        lifecycle = LifecycleManager(client, relay)
        app.state.client = client
        app.state.lifecycle = lifecycle
        await lifecycle.start()
        yield
        await lifecycle.shutdown()

    app = FastAPI(title="WhatsApp Gateway", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()


def _exit_on_sigterm(_signum: int, _frame: FrameType | None) -> None:
    sys.exit(0)


def main() -> None:
    """Run the gateway HTTP server until interrupted.

    uvicorn re-raises the stop signal once the lifespan has shut down; SIGINT
    surfaces as KeyboardInterrupt and SIGTERM as a zero exit.
    """
    signal.signal(signal.SIGTERM, _exit_on_sigterm)
    logger.info("Gateway starting on port %s", config.PORT)
    logger.info("Health check: http://localhost:%s/health", config.PORT)
    try:
        uvicorn.run(app, host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())
    except KeyboardInterrupt:
        logger.info("Gateway stopped")


if __name__ == "__main__":
    main()
