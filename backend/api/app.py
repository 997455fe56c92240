"""
FastAPI application factory for the Sharpline API service.

Creates the app with:
- REST routes (intel, pipeline status, reasoning status)
- Middleware stack
- Health check endpoints
- Lifespan management: builds the pipeline, optionally runs the background
  refresh loop, and closes every HTTP client on shutdown
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI

from shared.config import get_settings
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import SERVICE_INFO, start_metrics_server

from api.dependencies import init_dependencies
from api.middleware import setup_middleware
from api.routes.intel import router as intel_router
from api.routes.reasoning import router as reasoning_router
from pipeline.main import run_refresh_loop
from pipeline.wiring import PipelineServices, build_pipeline

logger = get_logger(__name__)

_services: Optional[PipelineServices] = None


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for testing without network clients."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Startup builds and starts the pipeline; shutdown cancels the refresh
    loop and closes the source and reasoning clients.
    """
    global _services

    settings = get_settings()
    setup_logging("api")
    start_metrics_server()
    SERVICE_INFO.info({"service": "api", "environment": settings.environment.value})

    _services = build_pipeline(settings)
    await _services.start()
    init_dependencies(_services.orchestrator, _services.reasoning)

    refresh_task: Optional[asyncio.Task[None]] = None
    if settings.api_background_refresh:
        refresh_task = asyncio.create_task(run_refresh_loop(_services.orchestrator, settings))

    logger.info("api_started", host=settings.api_host, port=settings.api_port)
    try:
        yield
    finally:
        if refresh_task is not None:
            refresh_task.cancel()
            try:
                await refresh_task
            except asyncio.CancelledError:
                pass
        await _services.close()
        _services = None
        logger.info("api_stopped")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for testing without network clients."""
    app = FastAPI(
        title="Sharpline API",
        description="Sports intelligence aggregation: collected data, factor verdicts and AI analysis per event",
        version="0.1.0",
        debug=get_settings().debug,
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    setup_middleware(app)

    app.include_router(intel_router)
    app.include_router(reasoning_router)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    @app.get("/ready", tags=["system"])
    async def readiness() -> dict[str, Any]:
        """Readiness probe: the pipeline has been built and started."""
        ready = _services is not None
        return {"status": "ready" if ready else "starting", "pipeline": ready}

    return app


app = create_app()
