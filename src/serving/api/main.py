"""
FastAPI Application Factory

Creates and configures the dashboard API application.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import structlog

from src.config import get_settings
from src.metrics.exceptions import InvalidFilterError, InvalidPeriodError, MetricsStoreUnavailable
from src.serving.api.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from src.serving.api.routes import dashboard_router, health_router

logger = structlog.get_logger(__name__)


async def invalid_request_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=422, content={"error": "invalid_request", "detail": str(exc)})


async def store_unavailable_handler(request: Request, exc: MetricsStoreUnavailable) -> JSONResponse:
    logger.error("Metrics unavailable", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=503, content={"error": "store_unavailable", "detail": str(exc)})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InvalidPeriodError, invalid_request_handler)
    app.add_exception_handler(InvalidFilterError, invalid_request_handler)
    app.add_exception_handler(MetricsStoreUnavailable, store_unavailable_handler)


def create_api_app(lifespan=None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        lifespan: Optional lifespan context manager for startup and shutdown

    Returns:
        Configured FastAPI app instance
    """
    settings = get_settings()

    app = FastAPI(
        title="Sales Metrics API",
        description="Sales, channel and product metrics for the dashboard",
        version=settings.version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # Add CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add compression
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    register_exception_handlers(app)

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(dashboard_router, prefix="/api/v1/dashboard", tags=["Dashboard"])

    return app
