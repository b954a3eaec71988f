"""
Liveness and readiness checks.

Readiness covers the two things every Beds24 call depends on: the database
and the key used to decrypt stored credentials.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from sync_beds24 import crypto
from sync_beds24.db.engine import check_engine_health
from sync_beds24.errors import ConfigurationError

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
def health_check() -> JSONResponse:
    """
    Liveness check. Returns 200 while the process is serving requests.

    Example:
        >>> GET /health
        {"status": "ok"}
    """
    return JSONResponse(content={"status": "ok"})


@router.get("/ready")
def readiness_check() -> JSONResponse:
    """
    Readiness check.

    Returns 200 when the database answers and credential encryption is
    configured, 503 otherwise.

    Example:
        >>> GET /ready
        {"status": "ready", "checks": {"database": "ok", "credentials": "ok"}}
    """
    checks = {"database": "ok" if check_engine_health() else "failed"}

    try:
        crypto.decrypt_token(crypto.encrypt_token("readiness"))
        checks["credentials"] = "ok"
    except ConfigurationError:
        checks["credentials"] = "failed"

    if all(value == "ok" for value in checks.values()):
        return JSONResponse(content={"status": "ready", "checks": checks})

    logger.error("readiness_check_failed", checks=checks)
    return JSONResponse(status_code=503, content={"status": "not ready", "checks": checks})
