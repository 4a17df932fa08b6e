"""
FastAPI Application Factory

Creates and configures the analytics API application: middleware, error
envelopes and routers. Process-level startup (logging, database, Redis)
lives in ``src.main``.
"""

from typing import Any, Callable, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from src.analytics.exceptions import AnalyticsError, EntityNotFoundError
from src.config import get_settings
from src.serving.api.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from src.serving.api.responses import error_response
from src.serving.api.routes import analytics_router, health_router, tracking_router

logger = structlog.get_logger(__name__)

API_PREFIX = "/api/v1"
ANALYTICS_PREFIX = f"{API_PREFIX}/analytics"


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure in the ``{success: false, message, error?}`` envelope."""

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        logger.warning("Invalid request", path=request.url.path, errors=exc.errors())
        return error_response(400, "Invalid request", str(exc.errors()))

    @app.exception_handler(EntityNotFoundError)
    async def not_found(request: Request, exc: EntityNotFoundError):
        return error_response(404, str(exc))

    @app.exception_handler(AnalyticsError)
    async def analytics_error(request: Request, exc: AnalyticsError):
        logger.error("Unhandled analytics error", path=request.url.path, error=str(exc))
        return error_response(500, "Failed to compute analytics", str(exc))


def create_api_app(lifespan: Optional[Callable[[FastAPI], Any]] = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        lifespan: Optional lifespan context (omitted by tests, which wire
            their own database)

    Returns:
        Configured FastAPI app instance
    """
    settings = get_settings()
    app = FastAPI(
        title="Commerce Analytics API",
        description="Tenant-scoped storefront tracking and commerce analytics",
        version=settings.version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.security.public_rate_limit,
        window_seconds=settings.security.public_rate_window_seconds,
        path_prefixes=(f"{ANALYTICS_PREFIX}/track", f"{ANALYTICS_PREFIX}/public"),
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)

    app.include_router(health_router, prefix=API_PREFIX, tags=["Health"])
    app.include_router(tracking_router, prefix=ANALYTICS_PREFIX, tags=["Storefront"])
    app.include_router(analytics_router, prefix=ANALYTICS_PREFIX, tags=["Analytics"])

    @app.get(f"{API_PREFIX}/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": settings.app_name,
            "version": settings.version,
            "environment": settings.app_env,
        }

    return app
