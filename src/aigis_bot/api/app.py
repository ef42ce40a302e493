"""
FastAPI application factory.

Manages the lifecycle of the bot service (firehose consumer, worker pool,
cursor flusher) and exposes health and metrics endpoints.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from ..agent.service import AigisService
from ..config import Settings, get_settings

logger = structlog.get_logger()

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


def create_app(settings: Settings | None = None, service: AigisService | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    service = service or AigisService(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        await service.start()

        yield

        await service.stop()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Aigis",
        description="Bluesky conversational agent",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.service = service

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        snapshot = service.metrics.snapshot()
        return {
            "status": "healthy" if service.running else "starting",
            "version": "0.1.0",
            "bluesky_configured": bool(settings.atp_user and settings.atp_password),
            "model": settings.llm_model,
            "posts_ingested": snapshot.posts_ingested,
            "ingest_errors": snapshot.ingest_errors,
        }

    @app.get("/metrics", response_class=PlainTextResponse)
    async def metrics():
        """Prometheus text exposition."""
        return PlainTextResponse(
            service.metrics.render_prometheus(),
            media_type=PROMETHEUS_CONTENT_TYPE,
        )

    return app
