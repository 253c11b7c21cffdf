"""Gateway lifecycle: startup, shutdown, shared HTTP client."""

import os

import httpx

from ..utils.logging_config import StructuredLogger
from ..utils.config_loader import config_loader

logger = StructuredLogger(__name__)

# Shared async client for connection pooling / keep-alive
_http_client: httpx.AsyncClient | None = None


def _client_timeout() -> float:
    if config_loader.config is not None:
        return config_loader.config.authorizer.timeout_seconds
    return float(os.getenv("REBAC_GATE_HTTP_TIMEOUT_SECONDS", "10"))


async def get_http_client() -> httpx.AsyncClient:
    global _http_client
    if _http_client is None or _http_client.is_closed:
        _http_client = httpx.AsyncClient(
            timeout=_client_timeout(),
            limits=httpx.Limits(max_connections=100, max_keepalive_connections=50)
        )
    return _http_client


def set_http_client(client: httpx.AsyncClient | None) -> None:
    global _http_client
    _http_client = client


async def startup_event(app):
    """Called on FastAPI startup."""
    strict_startup = (os.getenv("REBAC_GATE_STARTUP_STRICT", "0").strip() == "1")

    try:
        config = config_loader.load_config()
        logger.info(
            "Gateway configured",
            authorizer=config.authorizer.url,
            timeout_seconds=config.authorizer.timeout_seconds,
            tenant_id=config.policy.tenant_id,
            policy=config.policy.policy_name,
        )
    except Exception as exc:
        logger.error("Config load failed on startup", error=str(exc), strict=strict_startup)
        if strict_startup:
            os._exit(1)

    await get_http_client()


async def shutdown_event():
    """Called on FastAPI shutdown."""
    global _http_client
    if _http_client and not _http_client.is_closed:
        await _http_client.aclose()
