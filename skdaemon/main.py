"""skdaemon FastAPI application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from skdaemon import config
from skdaemon.errors import CompletionDaemonError, UnknownRoute
from skdaemon.observability import initialize as initialize_observability, shutdown as shutdown_observability
from skdaemon.project_manager import ProjectManager
from skdaemon.routers.completion import completion_router
from skdaemon.services.completion_service import CompletionService
from skdaemon.services.project_watcher import ProjectWatcher

logging.basicConfig(level=getattr(logging, config.LOG_LEVEL, logging.INFO))
logger = logging.getLogger("skdaemon")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("skdaemon starting up")
    initialize_observability(app)

    if config.PROJECT_FILE is None:
        raise RuntimeError("No project file configured (use --project or SKDAEMON_PROJECT_FILE)")

    # 1. Load the initial project state; failure aborts startup
    project_manager = ProjectManager(config.PROJECT_FILE)
    await project_manager.load()
    app.state.project_manager = project_manager

    # 2. Completion coordinator
    service = CompletionService(project_manager)
    app.state.completion_service = service

    # 3. Watch the project definition for changes
    watcher = ProjectWatcher(project_manager)
    app.state.project_watcher = watcher
    await watcher.start()

    yield

    logger.info("skdaemon shutting down")
    await watcher.stop()
    service.close()
    shutdown_observability(app)


app = FastAPI(
    title="skdaemon",
    description="Completion daemon for editors, backed by SourceKitten",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(CompletionDaemonError)
async def completion_error_handler(request: Request, exc: CompletionDaemonError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code in (404, 405):
        return await completion_error_handler(request, UnknownRoute(request.url.path))
    status = 400 if 400 <= exc.status_code < 500 else 500
    return JSONResponse(status_code=status, content={"error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Invalid request parameters"})


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


app.include_router(completion_router)
