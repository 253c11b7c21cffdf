"""Gateway admin endpoints: health/readiness and config reload."""

import os

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from ..observability import liveness_report, readiness_report
from ..utils.config_loader import config_loader
from ..utils.logging_config import StructuredLogger

logger = StructuredLogger(__name__)
router = APIRouter()


def _require_control_key(request: Request) -> None:
    expected = (os.getenv("REBAC_GATE_ADMIN_KEY") or "").strip()
    if not expected:
        return
    provided = (request.headers.get("x-rebac-gate-admin-key") or "").strip()
    if not provided or provided != expected:
        raise HTTPException(status_code=403, detail="Admin control key is required")


@router.get("/health")
async def health():
    return liveness_report()


@router.get("/ready")
async def ready():
    ready_ok, report = readiness_report(config_loader)
    status_code = 200 if ready_ok else 503
    return JSONResponse(content=report, status_code=status_code)


@router.post("/admin/reload_config")
async def reload_config_endpoint(request: Request):
    _require_control_key(request)
    try:
        config = config_loader.load_config()
    except Exception as e:
        logger.error("Config reload failed", error=str(e))
        raise HTTPException(status_code=500, detail=str(e))
    return {
        "status": "ok",
        "message": "Configuration reloaded",
        "routes": len(config.routes),
    }
