"""
FastAPI Application Entry Point
===============================

Main FastAPI application with health check, middleware,
and lifecycle management.
"""

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from catalog_sync import __version__
from catalog_sync.config.settings import get_settings
from catalog_sync.container import ServiceContainer, build_container
from catalog_sync.utils.errors import CatalogSyncError
from catalog_sync.utils.logger import configure_logging, get_logger

# Configure logging at module load
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Builds the service container on startup unless one was injected, and
    drains detached work and closes clients on shutdown.
    """
    owned = getattr(app.state, "container", None) is None
    if owned:
        app.state.container = build_container()

    container: ServiceContainer = app.state.container
    logger.info(
        "catalog-sync service starting",
        version=__version__,
        environment=container.settings.environment,
        shop=container.shopify_settings.shop,
        llm_enabled=container.llm_client is not None,
    )
    if not container.shopify_settings.app_webhook_secret:
        logger.warning("Webhook secret not set; every webhook will be rejected")

    yield

    logger.info("catalog-sync service shutting down")
    if owned:
        try:
            await container.aclose()
        except Exception as e:
            logger.error("Error during shutdown", error=str(e))


def create_app(container: ServiceContainer | None = None) -> FastAPI:
    """
    FastAPI application factory.

    Args:
        container: Pre-built services (tests); built from settings otherwise

    Returns:
        Configured FastAPI application instance
    """
    settings = container.settings if container is not None else get_settings()

    app = FastAPI(
        title="Catalog Sync API",
        description=(
            "Shopify catalog classification and idempotent sync. Receives product "
            "webhooks, runs backfills and executes catalog commands."
        ),
        version=__version__,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )
    app.state.container = container

    # -------------------------------------------------------------------------
    # Request Logging Middleware
    # -------------------------------------------------------------------------
    @app.middleware("http")
    async def log_requests(request: Request, call_next: Any) -> Any:
        """
        Log all incoming requests with timing and correlation ID.

        Adds X-Request-ID header for tracing and X-Process-Time header
        with request duration in seconds.
        """
        request_id = str(uuid4())
        start_time = time.perf_counter()

        logger.info(
            "Request received",
            request_id=request_id,
            method=request.method,
            path=str(request.url.path),
            query=str(request.query_params) if request.query_params else None,
            client_ip=request.client.host if request.client else None,
            topic=request.headers.get("x-shopify-topic"),
        )

        response = await call_next(request)

        process_time = time.perf_counter() - start_time
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.4f}"

        logger.info(
            "Request completed",
            request_id=request_id,
            method=request.method,
            path=str(request.url.path),
            status_code=response.status_code,
            duration_ms=round(process_time * 1000, 2),
        )

        return response

    # -------------------------------------------------------------------------
    # Exception Handlers
    # -------------------------------------------------------------------------
    @app.exception_handler(CatalogSyncError)
    async def catalog_sync_error_handler(
        request: Request, exc: CatalogSyncError
    ) -> JSONResponse:
        """Handle application-specific errors."""
        logger.error(
            "Application error",
            error_type=type(exc).__name__,
            message=exc.message,
            details=exc.details,
            path=str(request.url),
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": type(exc).__name__,
                "message": exc.message,
                "details": exc.details,
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected errors."""
        logger.exception(
            "Unexpected error",
            error_type=type(exc).__name__,
            message=str(exc),
            path=str(request.url),
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "InternalServerError",
                "message": "An unexpected error occurred",
            },
        )

    # -------------------------------------------------------------------------
    # Health Check Endpoint
    # -------------------------------------------------------------------------
    @app.get("/health", tags=["Health"], summary="Health check endpoint")
    async def health_check(request: Request) -> dict[str, Any]:
        """Liveness plus a few counters from the running container."""
        container: ServiceContainer | None = request.app.state.container
        health: dict[str, Any] = {"ok": True, "version": __version__}
        if container is not None:
            health["pending_work"] = container.work_queue.pending
            health["failed_work"] = container.work_queue.failures
            health["jobs"] = len(container.job_queue)
        return health

    # -------------------------------------------------------------------------
    # Register Routers
    # -------------------------------------------------------------------------
    from catalog_sync.api.routes import (
        backfill_router,
        commands_router,
        jobs_router,
        webhooks_router,
    )

    app.include_router(webhooks_router, prefix="/webhooks", tags=["Webhooks"])
    app.include_router(commands_router, prefix="/commands", tags=["Commands"])
    app.include_router(backfill_router, prefix="/backfill", tags=["Backfill"])
    app.include_router(jobs_router, prefix="/jobs", tags=["Jobs"])

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "catalog_sync.api.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


# Create application instance
app = create_app()
