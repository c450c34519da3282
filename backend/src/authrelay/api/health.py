"""Health and diagnostic endpoints for the Auth Relay."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends

from ..core.config import Settings
from ..core.logging import get_logger
from ..core.readiness import DirectoryGate
from .dependencies import get_app_settings, get_directory_gate

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health check")
async def health_check(gate: DirectoryGate = Depends(get_directory_gate)) -> dict:
    """Liveness plus the startup directory outcome.

    The service is healthy in fallback-only mode too, so status stays "ok"
    whether or not the directory initialized.
    """
    readiness = gate.readiness
    return {
        "status": "ok",
        "directory": {
            "initialized": readiness.available,
            "detail": readiness.detail,
        },
    }


@router.get("/api/test", summary="Connectivity test")
async def connectivity_test(settings: Settings = Depends(get_app_settings)) -> dict:
    """Echo endpoint used by the mobile client to confirm it can reach the relay."""
    timestamp = datetime.now(UTC).isoformat()
    logger.info("Connectivity test endpoint hit")
    return {
        "message": "Server is working properly!",
        "timestamp": timestamp,
        "environment": settings.environment,
    }
