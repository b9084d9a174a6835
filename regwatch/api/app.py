"""
FastAPI application factory.
"""

import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from regwatch import __version__
from regwatch.api.dependencies import cleanup_dependencies
from regwatch.api.routes import freshness, health, pipeline

logger = structlog.get_logger(__name__)

# Probed by load balancers every few seconds
_QUIET_PATHS = frozenset({"/health", "/"})


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Regwatch API starting up")
    yield
    logger.info("Regwatch API shutting down")
    await cleanup_dependencies()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    openapi_tags = [
        {"name": "health", "description": "Service health checks"},
        {"name": "pipeline", "description": "Trigger ingestion runs"},
        {"name": "sources", "description": "Per-source freshness and health"},
    ]

    app = FastAPI(
        title="Regwatch API",
        description="""
Regulatory alert pipeline.

`POST /pipeline/run` fetches every due source (openFDA, RSS feeds,
scraped listings), classifies and deduplicates the items and stores
new alerts.
        """,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=openapi_tags,
    )

    # Correlation ID shared by every log line of the request, pipeline
    # run lines included
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            started = time.perf_counter()
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id

            log = logger.debug if request.url.path in _QUIET_PATHS else logger.info
            log(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
        return response

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception", path=request.url.path, error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error_type": "internal"},
        )

    app.include_router(health.router, tags=["health"])
    app.include_router(pipeline.router, tags=["pipeline"])
    app.include_router(freshness.router, tags=["sources"])

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "service": "Regwatch API",
            "version": __version__,
            "docs": "/docs",
        }

    return app
