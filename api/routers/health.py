"""
Health check router.

This router provides health check endpoints for monitoring and load balancers.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.deps import get_settings
from backend.settings import Settings

logger = logging.getLogger(__name__)

SERVICE_NAME = "program-builder-api"

router = APIRouter(
    tags=["Health"],
)


@router.get("/health")
def health():
    """
    Simple liveness endpoint for program-builder-api.

    Returns:
        dict: Status indicator for health checks
    """
    return {"status": "ok", "service": SERVICE_NAME}


@router.get("/health/ready")
async def health_ready(settings: Settings = Depends(get_settings)):
    """
    Readiness probe that checks the generation oracle is configured.

    Returns 503 when the selected provider's API key is missing.
    """
    checks = {"provider": settings.oracle_provider}

    if settings.oracle_api_key:
        checks["oracle"] = "ok"
    else:
        logger.warning("Readiness check failed: %s not set", settings.oracle_api_key_name)
        checks["oracle"] = "not_configured"
        return JSONResponse(
            status_code=503,
            content={
                "status": "not_ready",
                "service": SERVICE_NAME,
                "checks": checks,
            },
        )

    return {"status": "ready", "service": SERVICE_NAME, "checks": checks}
