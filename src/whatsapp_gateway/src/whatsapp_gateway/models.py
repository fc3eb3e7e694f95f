"""Pydantic schemas for orchestrator and control-surface payloads."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class IncomingMessage(BaseModel):
    """Inbound WhatsApp message forwarded to the orchestrator."""

    model_config = ConfigDict(populate_by_name=True)

    sender: str = Field(alias="from")
    body: str
    timestamp: int
    type: str

    def to_payload(self) -> dict[str, Any]:
        """Return the wire form ``{from, body, timestamp, type}``."""
        return self.model_dump(by_alias=True)


class OrchestratorReply(BaseModel):
    """Reply payload returned by the orchestrator."""

    reply: str | None = None


class SendMessageRequest(BaseModel):
    """Direct send request; presence of both fields is checked by the route."""

    to: str | None = None
    message: str | None = None


class SendMessageResponse(BaseModel):
    """Successful direct send."""

    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """Error body returned by the control surface."""

    error: str


class HealthResponse(BaseModel):
    """Liveness payload."""

    status: str
    whatsapp_ready: bool
    timestamp: str


class StatusResponse(BaseModel):
    """Process status payload."""

    service: str
    status: str
    uptime: float
    memory: dict[str, Any]
    timestamp: str
