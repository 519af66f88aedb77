"""
Health check API routes.
"""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Basic health check endpoint."""
    manager = getattr(request.app.state, "workspace_manager", None)
    if manager is None:
        return {"status": "unhealthy", "error": "Workspace manager not initialized"}
    return {
        "status": "healthy",
        "vfs_root": str(manager.vfs.root_dir),
        "github": manager.github.get_statistics(),
    }
