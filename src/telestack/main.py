"""
Main FastAPI application entry point.

This module sets up the FastAPI app with the telemetry middleware, routes,
and lifecycle events.
"""

import logging
import tracemalloc
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api import healthz_router, metrics_router, products_router
from .config import Settings, get_settings
from .core.aggregator import BusinessMetricsAggregator
from .core.events import EventLogger
from .core.exceptions import TelestackException
from .core.masking import create_masker
from .core.metrics import MetricsRegistry
from .core.middleware import TELEMETRY_STATE_KEY, TelemetryMiddleware
from .core.repository import ProductRepository
from .core.service import ProductService


def configure_logging(log_level: str = "INFO", log_format: str = "console") -> None:
    """Configure structured logging for the application."""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper()),
    )

    # Silence the verbose watchfiles logger
    logging.getLogger("watchfiles").setLevel(logging.WARNING)

    processors: List[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if log_format == "json":
        processors.extend([
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ])
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def create_lifespan_handler(settings: Settings) -> Any:
    """Create a lifespan handler with access to settings."""
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """
        FastAPI lifespan context manager.

        Starts GC pause tracking, and allocation tracing when configured,
        and stops both again on shutdown.
        """
        logger = structlog.get_logger(__name__)
        logger.info("Starting telestack service", version=app.version, environment=settings.environment)

        started_tracing = False
        if settings.metrics.trace_allocations and not tracemalloc.is_tracing():
            tracemalloc.start()
            started_tracing = True
        app.state.metrics.start_gc_tracking()

        try:
            logger.info("Telestack service started successfully")
            yield
        finally:
            logger.info("Shutting down telestack service")
            app.state.metrics.stop_gc_tracking()
            if started_tracing:
                tracemalloc.stop()
            logger.info("Telestack service shutdown complete")

    return lifespan


async def telestack_exception_handler(request: Request, exc: TelestackException) -> JSONResponse:
    """Handle custom telestack exceptions."""
    ctx = getattr(request.state, TELEMETRY_STATE_KEY, None)
    logger = ctx.logger if ctx is not None else structlog.get_logger(__name__)
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "Telestack exception occurred",
        error=str(exc),
        error_code=exc.error_code,
        status_code=exc.status_code,
        path=request.url.path,
        method=request.method,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_code,
            "message": str(exc),
            "details": exc.details,
        },
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Every app owns its own metrics registry and product store, so several
    apps can live in one process without sharing state.
    """
    if settings is None:
        settings = get_settings()

    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Telestack",
        description="Product catalogue API with request telemetry",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=create_lifespan_handler(settings),
    )

    # Core components
    masker = create_masker(settings.masking)
    registry = MetricsRegistry(service_name=settings.service_name, version=__version__)
    aggregator = BusinessMetricsAggregator(
        registry,
        low_stock_threshold=settings.metrics.low_stock_threshold,
        high_value_threshold=settings.metrics.high_value_threshold,
    )
    events = EventLogger(masker)
    repository = ProductRepository(registry, aggregator, settings.metrics)

    app.state.settings = settings
    app.state.masker = masker
    app.state.metrics = registry
    app.state.product_service = ProductService(repository, events, registry, settings.metrics)

    app.add_middleware(TelemetryMiddleware, masker=masker, registry=registry)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Correlation-ID"],
    )

    app.add_exception_handler(TelestackException, telestack_exception_handler)

    app.include_router(products_router, prefix="/v1", tags=["products"])
    app.include_router(metrics_router, tags=["metrics"])
    app.include_router(healthz_router, tags=["health"])

    @app.get("/", include_in_schema=False)
    async def root() -> Dict[str, str]:
        """Root endpoint with service information."""
        return {
            "service": settings.service_name,
            "version": app.version,
            "docs": "/docs",
        }

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "telestack.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=settings.debug,
    )
