"""Health check endpoints."""

from fastapi import APIRouter, Depends, Response

from voxchat import __version__
from voxchat.realtime.connection import ConnectionManager, get_connection_manager

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Basic health check."""
    return {
        "status": "healthy",
        "version": __version__,
    }


@router.get("/health/ready")
async def readiness_check(
    manager: ConnectionManager = Depends(get_connection_manager),
) -> dict:
    """Readiness probe: configuration must load."""
    from voxchat.config import ConfigurationError, get_settings

    try:
        get_settings()
    except ConfigurationError:
        return Response(status_code=503, content="Configuration not ready")

    return {
        "status": "ready",
        "active_connections": manager.active_connection_count,
    }


@router.get("/health/live")
async def liveness_check() -> dict:
    """Liveness probe."""
    return {"status": "alive"}
