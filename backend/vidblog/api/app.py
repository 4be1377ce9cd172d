"""FastAPI application setup with lifespan and exception handlers."""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from vidblog import __version__, validate_dependencies
from vidblog.api.routes import router
from vidblog.config import settings
from vidblog.db import init_database, shutdown
from vidblog.orchestrator.errors import (
    ConcurrentUpdateError,
    PersistenceError,
    PrerequisiteError,
    StepAlreadyCompletedError,
    StepExecutionError,
    StepInProgressError,
    StepResetError,
    WorkflowNotFoundError,
    WorkflowValidationError,
)
from vidblog.orchestrator.service import WorkflowService
from vidblog.orchestrator.videos import VideoLibrary, VideoNotFoundError
from vidblog.runtime import build_prompt_service, build_workflow_service
from vidblog.services.prompts import PromptNotFoundError, PromptService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Startup:
        - Validate system dependencies (ffmpeg)
        - Initialize database schema
        - Wire the SQL-backed services and seed default prompts

    Services injected through create_app() are used as given.

    Shutdown:
        - Close database connections
    """
    # Startup
    logger.info("Starting vidblog API...")
    managed = getattr(app.state, "workflow_service", None) is None
    if managed:
        validate_dependencies()
        await init_database()
        app.state.prompt_service = build_prompt_service()
        app.state.workflow_service = build_workflow_service(prompt_service=app.state.prompt_service)
        app.state.video_library = VideoLibrary(
            app.state.workflow_service, app.state.workflow_service.file_manager
        )
        await app.state.prompt_service.initialize_defaults()
    logger.info("API startup complete")

    yield

    # Shutdown
    logger.info("Shutting down vidblog API...")
    if managed:
        await shutdown()
    logger.info("API shutdown complete")


def _error(status_code: int, exc: Exception, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), **extra})


def register_exception_handlers(app: FastAPI) -> None:
    """Map the workflow error taxonomy onto HTTP responses."""

    @app.exception_handler(WorkflowValidationError)
    async def validation_error_handler(request: Request, exc: WorkflowValidationError):
        return _error(422, exc)

    @app.exception_handler(WorkflowNotFoundError)
    async def not_found_handler(request: Request, exc: WorkflowNotFoundError):
        return _error(404, exc)

    @app.exception_handler(PromptNotFoundError)
    async def prompt_not_found_handler(request: Request, exc: PromptNotFoundError):
        return _error(404, exc)

    @app.exception_handler(VideoNotFoundError)
    async def video_not_found_handler(request: Request, exc: VideoNotFoundError):
        return _error(404, exc)

    @app.exception_handler(PrerequisiteError)
    async def prerequisite_handler(request: Request, exc: PrerequisiteError):
        return _error(409, exc, missing_prerequisites=exc.missing)

    @app.exception_handler(StepAlreadyCompletedError)
    async def already_completed_handler(request: Request, exc: StepAlreadyCompletedError):
        return _error(409, exc)

    @app.exception_handler(StepInProgressError)
    async def in_progress_handler(request: Request, exc: StepInProgressError):
        return _error(409, exc)

    @app.exception_handler(StepResetError)
    async def reset_handler(request: Request, exc: StepResetError):
        return _error(409, exc)

    @app.exception_handler(StepExecutionError)
    async def step_failed_handler(request: Request, exc: StepExecutionError):
        return JSONResponse(status_code=500, content={"success": False, "error": exc.message})

    @app.exception_handler(ConcurrentUpdateError)
    async def concurrent_update_handler(request: Request, exc: ConcurrentUpdateError):
        return _error(409, exc)

    @app.exception_handler(PersistenceError)
    async def persistence_handler(request: Request, exc: PersistenceError):
        logger.error(f"Persistence failure in {request.method} {request.url.path}: {exc}")
        return _error(500, exc)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all exception handler to prevent stack traces in API responses."""
        logger.error(f"Unhandled exception in {request.method} {request.url.path}: {type(exc).__name__}: {str(exc)}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc),
            }
        )


def create_app(
    workflow_service: Optional[WorkflowService] = None,
    prompt_service: Optional[PromptService] = None,
    video_library: Optional[VideoLibrary] = None,
) -> FastAPI:
    """Build the application. Without services, the lifespan wires the SQL-backed ones."""
    app = FastAPI(
        title="vidblog API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.workflow_service = workflow_service
    app.state.prompt_service = prompt_service
    app.state.video_library = video_library

    # CORS for Vite dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    register_exception_handlers(app)

    # Generated screenshots, transcripts and blog posts, at the paths reported in step outputs
    app.mount(
        settings.storage.public_output_prefix.rstrip("/"),
        StaticFiles(directory=settings.storage.output_dir, check_dir=False),
        name="output",
    )
    return app


app = create_app()
