"""FastAPI application entry point."""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from repository_usage.api.admin import router as admin_router
from repository_usage.api.events import router as events_router
from repository_usage.api.health import router as health_router
from repository_usage.config import Settings
from repository_usage.database import Database
from repository_usage.exceptions import GitError
from repository_usage.services.git_service import RepositoryManager
from repository_usage.services.ref_service import RefService
from repository_usage.services.ref_update_handler import RefUpdateHandler
from repository_usage.services.scan_service import ScanService
from repository_usage.services.scanning_queue import ScanningQueue
from repository_usage.services.usage_service import UsageService

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool) -> None:
    """Configure application logging."""
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if debug else logging.WARNING)


async def init_services(app: FastAPI, settings: Settings) -> None:
    """Create the database, handler, queue and scan service on ``app.state``."""
    database = Database(settings)
    await database.bootstrap()
    app.state.database = database

    repo_manager = RepositoryManager(settings.repositories_dir)
    handler = RefUpdateHandler(
        settings,
        repo_manager,
        RefService(database),
        UsageService(database),
    )
    queue = ScanningQueue()
    queue.start()

    app.state.repo_manager = repo_manager
    app.state.handler = handler
    app.state.queue = queue
    app.state.scan_service = ScanService(repo_manager, handler, queue)


async def shutdown_services(app: FastAPI) -> None:
    """Drain the queue, then release the database."""
    try:
        await app.state.queue.stop()
    except Exception as exc:
        logger.error("Error during queue shutdown: %s", exc, exc_info=True)

    try:
        await app.state.database.dispose()
    except Exception as exc:
        logger.error("Error during engine disposal: %s", exc, exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan: startup and shutdown."""
    settings: Settings = app.state.settings
    _configure_logging(settings.debug)
    logger.info("Starting repository usage service (debug=%s)", settings.debug)

    await init_services(app, settings)
    if not app.state.database.is_available:
        logger.error("Database unavailable; ref updates will not be recorded")

    yield

    await shutdown_services(app)
    logger.info("Repository usage service stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="Repository Usage",
        description="Tracks which repositories depend on which, per branch",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings

    app.include_router(health_router)
    app.include_router(events_router)
    app.include_router(admin_router)

    # Global exception handlers: safety net for unhandled exceptions

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = []
        for err in exc.errors():
            loc = err.get("loc", ())
            field = str(loc[-1]) if loc else "unknown"
            errors.append({"field": field, "message": err.get("msg", "Invalid value")})
        logger.warning(
            "RequestValidationError in %s %s: %s",
            request.method,
            request.url.path,
            errors,
        )
        return JSONResponse(status_code=422, content={"detail": errors})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        logger.warning("ValueError in %s %s: %s", request.method, request.url.path, exc)
        message = str(exc) or "Invalid value"
        return JSONResponse(
            status_code=422,
            content={"detail": message},
        )

    @app.exception_handler(GitError)
    async def git_error_handler(request: Request, exc: GitError) -> JSONResponse:
        logger.error("GitError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
        return JSONResponse(
            status_code=502,
            content={"detail": "Repository access failed"},
        )

    @app.exception_handler(OperationalError)
    async def operational_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
        logger.error(
            "OperationalError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc
        )
        return JSONResponse(
            status_code=503,
            content={"detail": "Database temporarily unavailable"},
        )

    return app


app = create_app()


def cli_entry() -> None:
    """CLI entry point for running the server."""
    import uvicorn

    settings: Settings = app.state.settings
    uvicorn.run(
        "repository_usage.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
