from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.rate_limit import get_rate_limiter_service

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check endpoint.

    Returns a simple status response to verify the API is operational.
    Used by load balancers and monitoring systems to determine service health.

    Returns:
        dict: A dictionary with a single "status" key set to "ok".
    """

    return {"status": "ok"}


@router.get("/health/ready")
def readiness_check() -> JSONResponse:
    """Readiness check reporting counter store reachability.

    An unreachable store does not stop traffic (the limiter fails open), so
    this reports "degraded" with HTTP 200 rather than failing the probe.
    """

    if not settings.rate_limit.enabled:
        return JSONResponse({"status": "ok", "store": "disabled"})

    store_ok = get_rate_limiter_service().store.ping()
    return JSONResponse(
        {
            "status": "ok" if store_ok else "degraded",
            "store": settings.rate_limit.backend,
            "store_reachable": store_ok,
        }
    )
