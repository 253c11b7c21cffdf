"""Liveness and readiness helpers."""

from __future__ import annotations

from datetime import datetime, UTC
from typing import TYPE_CHECKING

from rebac_gate import __version__

if TYPE_CHECKING:
    from ..utils.config_loader import ConfigLoader


def liveness_report() -> dict:
    return {
        "status": "ok",
        "version": __version__,
        "ts": datetime.now(UTC).isoformat(),
    }


def readiness_report(loader: ConfigLoader) -> tuple[bool, dict]:
    checks: dict[str, dict] = {}
    ready = True

    config = loader.config
    if config is None:
        checks["config"] = {"ok": False, "error": "configuration not loaded"}
        ready = False
    else:
        checks["config"] = {
            "ok": True,
            "routes": len(config.routes),
            "consumers": len(config.consumers),
        }
        if not config.routes:
            checks["routes"] = {"ok": False, "error": "no routes configured"}
            ready = False

    payload = {
        "ready": ready,
        "status": "ready" if ready else "not_ready",
        "version": __version__,
        "ts": datetime.now(UTC).isoformat(),
        "checks": checks,
    }
    return ready, payload
