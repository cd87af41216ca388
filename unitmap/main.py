"""FastAPI application entry point."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from unitmap.config import get_settings
from unitmap.dependencies import get_hierarchy_store, set_http_client
from unitmap.exceptions import HierarchyUnavailable
from unitmap.logging_config import LoggingMiddleware, get_logger, metrics, setup_logging

settings = get_settings()

# Initialize structured logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown."""
    logger.info("application_starting", version="0.1.0", env=settings.app_env)

    client = httpx.AsyncClient(timeout=settings.request_timeout_seconds)
    set_http_client(client)

    # Warm the state list; failures are retried on first use
    try:
        regions = await get_hierarchy_store().load_regions()
        logger.info("regions_preloaded", count=len(regions))
    except HierarchyUnavailable as e:
        logger.warning("regions_preload_failed", error=e.message)

    logger.info("application_started")
    yield

    logger.info("application_shutting_down")
    await client.aclose()
    set_http_client(None)
    logger.info("http_client_closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    from unitmap.routers.map import router as map_router

    app = FastAPI(
        title="Unit Economic Map",
        description="Cascading state/LGA filters, sales aggregation and map styling",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Logging middleware (must be added first so it wraps all requests)
    app.add_middleware(LoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(map_router)

    @app.get("/health", tags=["Health"])
    async def health_check() -> JSONResponse:
        """Health check endpoint."""
        checks = {
            "status": "healthy",
            "app": settings.app_name,
            "env": settings.app_env,
        }

        try:
            checks["regions"] = get_hierarchy_store().regions_state.value
        except RuntimeError:
            checks["regions"] = "not initialized"

        return JSONResponse(content=checks)

    @app.get("/metrics", tags=["Health"])
    async def pipeline_metrics() -> JSONResponse:
        """Request, failure and stale-result counters."""
        return JSONResponse(content=metrics.get_all_metrics())

    @app.get("/", include_in_schema=False)
    async def root():
        """Redirect root to API documentation."""
        from fastapi.responses import RedirectResponse

        return RedirectResponse(url="/docs")

    return app


app = create_app()
