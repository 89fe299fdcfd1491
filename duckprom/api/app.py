"""FastAPI application factory and configuration."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from duckprom import __version__
from duckprom.adapter import RemoteStorageAdapter
from duckprom.api.exceptions import DuckPromAPIException
from duckprom.api.middleware import LoggingMiddleware, RequestIDMiddleware
from duckprom.api.routers import health_router, metrics_router, remote_router
from duckprom.config import Settings, get_settings
from duckprom.logging_config import log_operation
from duckprom.metrics import AdapterMetrics
from duckprom.remote.parser import RemoteRequestParser
from duckprom.storage import create_backend

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown tasks:
    - Startup: build and initialize the storage backend and adapter, unless
      an adapter was injected into create_app
    - Shutdown: close the backend the lifespan created

    Args:
        app: FastAPI application instance

    Yields:
        None
    """
    settings: Settings = app.state.settings
    logger.info(
        "application_starting",
        host=settings.duckprom_host,
        port=settings.duckprom_port,
        version=__version__,
    )

    owned_backend = None
    if app.state.adapter is None:
        try:
            backend = create_backend(settings)
            await backend.initialize()
        except Exception as e:
            logger.error(
                "storage_initialization_failed",
                backend=settings.storage_backend,
                database=settings.storage_database,
                error=str(e),
                exc_info=True,
            )
            raise
        owned_backend = backend
        app.state.adapter = RemoteStorageAdapter(backend, metrics=AdapterMetrics())
        log_operation(
            logger,
            "initialize_storage",
            backend=backend,
            database=settings.storage_database,
        )

    logger.info("application_initialized")

    yield

    logger.info("application_shutting_down")
    if owned_backend is not None:
        await owned_backend.close()
        app.state.adapter = None
        log_operation(logger, "close_storage", backend=owned_backend)


def create_app(
    adapter: RemoteStorageAdapter | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        adapter: Pre-built adapter (tests, embedding); when omitted the
            lifespan builds one from settings
        settings: Settings to use instead of the global settings

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="duckprom",
        description="Prometheus remote read/write storage adapter backed by DuckDB",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url=None,
        openapi_url="/openapi.json",
    )

    app.state.settings = settings
    app.state.adapter = adapter
    app.state.request_parser = RemoteRequestParser(
        max_size=settings.max_request_size_bytes
    )

    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(remote_router)
    app.include_router(health_router)
    if settings.metrics_enabled:
        app.include_router(metrics_router)

    logger.debug("application_created", title=app.title, version=app.version)
    return app


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(DuckPromAPIException)
    async def duckprom_api_exception_handler(
        request: Request,
        exc: DuckPromAPIException,
    ) -> JSONResponse:
        """Handle DuckPromAPIException and all subclasses."""
        request_id = getattr(request.state, "request_id", "unknown")
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "api_exception",
            path=request.url.path,
            status_code=exc.status_code,
            detail=exc.detail,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.detail,
                "request_id": request_id,
            },
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        request_id = getattr(request.state, "request_id", "unknown")
        logger.error(
            "unexpected_error",
            path=request.url.path,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal server error",
                "request_id": request_id,
            },
        )


app = create_app()
