"""Environment configuration for the WhatsApp gateway."""

import os

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name) or str(default)
    try:
        return int(value)
    except ValueError as exc:
        msg = f"{name} must be an integer."
        raise RuntimeError(msg) from exc


def _float_env(name: str, default: float) -> float:
    value = os.environ.get(name) or str(default)
    try:
        return float(value)
    except ValueError as exc:
        msg = f"{name} must be a number."
        raise RuntimeError(msg) from exc


SERVICE_NAME = "WhatsApp Gateway"
HOST = os.environ.get("HOST", "0.0.0.0")  # noqa: S104
PORT = _int_env("PORT", 3000)
ORCHESTRATOR_URL = os.environ.get("ORCHESTRATOR_URL") or "http://localhost:8000"
ORCHESTRATOR_TIMEOUT_SECONDS = _float_env("ORCHESTRATOR_TIMEOUT_SECONDS", 60.0)
CORS_ORIGINS = [origin.strip() for origin in os.environ.get("CORS_ORIGINS", "*").split(",") if origin.strip()] or ["*"]
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
