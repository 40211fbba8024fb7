"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order

For local development:
    uvicorn src.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import health, objects
from .config.settings import get_settings
from .core.storage.errors import (
    BackendError,
    GatewayError,
    InvalidExpiry,
    MissingContent,
    PolicyViolation,
    UnrecognizedFormat,
)

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


def error_status(error: GatewayError) -> int:
    """HTTP status for a gateway error kind."""
    if isinstance(error, PolicyViolation) and error.field == "size":
        return 413
    if isinstance(error, (MissingContent, PolicyViolation, InvalidExpiry)):
        return 400
    if isinstance(error, UnrecognizedFormat):
        return 422
    if isinstance(error, BackendError):
        return 502
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Logs the storage mode on startup and warns about missing
    configuration instead of refusing to start.
    """
    settings = get_settings()

    logger.info(
        "Object Gateway API starting",
        extra={
            "version": settings.api_version,
            "mock_mode": settings.storage_mock_mode,
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    yield

    logger.info("Object Gateway API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Called once at startup in production, or once per test with
    different settings.
    """
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Tiered object storage gateway.

        ## Tiers

        - **public**: profile images, served from a permanent locator
        - **private**: documents, readable only through signed, expiring locators

        ## Authentication

        All object endpoints require an API key provided in the `X-API-Key` header.

        ## Errors

        Failures return `{"kind": ..., "message": ...}` plus kind-specific
        fields, so clients can branch on `kind`.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        objects.router,
        prefix="/api/v1/objects",
        tags=["Objects"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint - points at the docs."""
        return {
            "message": settings.api_title,
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(GatewayError)
    async def gateway_exception_handler(request: Request, exc: GatewayError):
        """Structured response for every gateway error kind."""
        status_code = error_status(exc)
        log = logger.error if status_code >= 500 else logger.info
        log(
            "Gateway error",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error_kind": exc.kind,
                "error": exc.message,
            },
        )
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        Prevents stack traces from leaking to clients. The full error is
        logged server-side.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error. Please contact support if this persists."
            }
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
