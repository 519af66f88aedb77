"""
Editor Backend FastAPI Application
Main entry point: repository import, workspace files, search and version control.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from editor_backend.api.v1.routes import git, health, workspaces
from editor_backend.config.settings import Settings, get_settings
from editor_backend.core.workspace_manager import FeatureDisabledError, WorkspaceManager
from editor_backend.utils.error_handling import (
    AcquisitionError,
    ArchiveDecodeError,
    EditorError,
    ErrorCategory,
    FileNotFoundInWorkspace,
)
from editor_backend.utils.logging_utils import configure_logging

logger = structlog.get_logger(__name__)

UPSTREAM_STATUSES = (401, 403, 404)

CATEGORY_STATUS = {
    ErrorCategory.ACQUISITION: 502,
    ErrorCategory.DECODE: 502,
    ErrorCategory.NETWORK: 502,
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.VERSION_CONTROL: 409,
    ErrorCategory.FILESYSTEM: 500,
}


def status_for_error(error: EditorError) -> int:
    """HTTP status code for an editor error."""
    if isinstance(error, FileNotFoundInWorkspace):
        return 404
    if isinstance(error, AcquisitionError) and error.status in UPSTREAM_STATUSES:
        return error.status
    return CATEGORY_STATUS.get(error.category, 500)


def create_app(settings: Optional[Settings] = None, manager: Optional[WorkspaceManager] = None) -> FastAPI:
    """Build the application; ``manager`` replaces the one built at startup."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        configure_logging(settings.validate_log_level(), settings.log_format)
        logger.info("Starting editor backend", vfs_root=settings.vfs_root)

        app.state.workspace_manager = manager or WorkspaceManager(settings)

        yield

        logger.info("Shutting down editor backend")
        await app.state.workspace_manager.close()

    app = FastAPI(
        title=settings.app_name,
        description="Repository import and synchronization for the in-browser editor",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(EditorError)
    async def editor_error_handler(request: Request, exc: EditorError):
        body = exc.to_dict()
        if isinstance(exc, (AcquisitionError, ArchiveDecodeError)):
            body["message"] = exc.user_message()
        status_code = status_for_error(exc)
        logger.warning("Request failed", path=request.url.path, status=status_code,
                       category=exc.category.value, error=exc.message)
        return JSONResponse(status_code=status_code, content=body)

    @app.exception_handler(FeatureDisabledError)
    async def feature_disabled_handler(request: Request, exc: FeatureDisabledError):
        return JSONResponse(status_code=403, content={"error": str(exc), "category": "feature"})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(status_code=400, content={"error": str(exc), "category": ErrorCategory.VALIDATION.value})

    app.include_router(workspaces.router, prefix=settings.api_prefix, tags=["workspaces"])
    app.include_router(git.router, prefix=settings.api_prefix, tags=["git"])
    app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("editor_backend.app:app", host="0.0.0.0", port=8000)
