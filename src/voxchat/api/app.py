"""
VoxChat FastAPI Application

Main application factory and configuration.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from fastapi.staticfiles import StaticFiles

from voxchat import __version__
from voxchat.config import get_settings
from voxchat.logging import configure_logging

from .routes import chat, health

logger = structlog.get_logger()


# ══════════════════════════════════════════════════════════════
# Lifespan Management
# ══════════════════════════════════════════════════════════════


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    # Served without the CLI (e.g. uvicorn --factory)
    if not structlog.is_configured():
        configure_logging(settings.log_level, json=settings.log_json)

    logger.info(
        "Starting VoxChat",
        version=__version__,
        environment=settings.app_env,
        transcription_model=settings.transcription_model,
    )

    yield

    logger.info("Shutting down VoxChat")

    # Close any transcription sessions still open
    from voxchat.transcription.registry import registry

    await registry.close_all()

    logger.info("VoxChat shutdown complete")


# ══════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Raises:
        ConfigurationError: if required settings are missing
    """
    settings = get_settings()

    app = FastAPI(
        title="VoxChat",
        description="Group chat with live speech transcription",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # ──────────────────────────────────────────────────────────
    # Middleware
    # ──────────────────────────────────────────────────────────

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request logging
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all requests with timing."""
        import time

        start = time.perf_counter()

        response = await call_next(request)

        duration = (time.perf_counter() - start) * 1000
        logger.info(
            "Request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round(duration, 2),
        )

        return response

    # ──────────────────────────────────────────────────────────
    # Routes
    # ──────────────────────────────────────────────────────────

    app.include_router(
        health.router,
        tags=["Health"],
    )

    # WebSocket routes
    app.include_router(
        chat.router,
        prefix="/ws",
        tags=["Chat"],
    )

    # Browser client, served last so it never shadows the API
    static_dir = Path(settings.static_dir)
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
    else:
        logger.debug("Static directory not found, skipping mount", path=str(static_dir))

    return app
