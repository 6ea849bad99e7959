"""FastAPI application for Storywire."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storywire import __version__
from storywire.config import Settings
from storywire.exceptions import NotFoundError, StorywireError, ValidationError
from storywire.logging import configure_logging, get_logger
from storywire.service import StorywireService

from .router import router, set_service

logger = get_logger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create a FastAPI application.

    Args:
        settings: Optional settings. Uses environment if None.

    Returns:
        Configured FastAPI application.

    Example:
        ```python
        from storywire.api import create_app

        app = create_app()
        # Run with: uvicorn storywire.api:app --reload
        ```
    """
    if settings is None:
        settings = Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Manage application lifespan.

        Initializes the StorywireService on startup. On shutdown the
        notification pipeline is stopped before storage is closed.
        """
        configure_logging(level=settings.log_level, format=settings.log_format)
        logger.info(
            "Starting Storywire API",
            env=settings.env,
            log_level=settings.log_level,
            max_concurrent=settings.dispatch_max_concurrent,
        )

        service = StorywireService.create(settings)
        await service.initialize()
        set_service(service)

        yield

        set_service(None)
        await service.close()
        logger.info("Storywire API stopped")

    app = FastAPI(
        title="Storywire",
        description="Signed webhooks for story status changes.",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    if settings.cors_enabled:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Register exception handlers
    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        """Handle validation errors with 400 status."""
        logger.warning(
            "Validation error", field=exc.field, error=exc.message, path=str(request.url)
        )
        return JSONResponse(status_code=400, content=exc.to_dict())

    @app.exception_handler(NotFoundError)
    async def not_found_error_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        """Handle not found errors with 404 status."""
        logger.info(
            "Resource not found",
            resource_type=exc.resource_type,
            resource_id=exc.resource_id,
            path=str(request.url),
        )
        return JSONResponse(status_code=404, content=exc.to_dict())

    @app.exception_handler(StorywireError)
    async def storywire_error_handler(request: Request, exc: StorywireError) -> JSONResponse:
        """Handle all other Storywire errors with 500 status."""
        logger.error("Storywire error", error=exc.message, code=exc.code, path=str(request.url))
        return JSONResponse(status_code=500, content=exc.to_dict())

    app.include_router(router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
