"""
Workspace routes: import, browse, edit and search working trees.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from editor_backend.core.workspace_manager import WorkspaceManager
from editor_backend.models.api.workspace_models import (
    FileContentResponse,
    FileWriteRequest,
    FolderCreateRequest,
    ImportRequest,
    ImportResponse,
    LocalRepositoryRequest,
    LocalRepositoryResponse,
    SearchHitModel,
    SearchResponse,
    TreeResponse,
)
from editor_backend.utils.path_utils import local_workdir, remote_workdir

logger = structlog.get_logger(__name__)
router = APIRouter()
security = HTTPBearer(auto_error=False)


def get_manager(request: Request) -> WorkspaceManager:
    """Workspace manager built by the application lifespan."""
    return request.app.state.workspace_manager


def get_credential(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> Optional[str]:
    """GitHub access token forwarded by the caller, if any."""
    if not credentials:
        return None
    return credentials.credentials


def resolve_work_dir(request: Request) -> str:
    """Working directory addressed by the route's path parameters."""
    params = request.path_params
    if "name" in params:
        return local_workdir(params["name"])
    return remote_workdir(params["owner"], params["repo"])


@router.post("/workspaces/import", response_model=ImportResponse)
async def import_repository(
    body: ImportRequest,
    manager: WorkspaceManager = Depends(get_manager),
    credential: Optional[str] = Depends(get_credential),
):
    """Import a remote repository into its workspace."""
    result = await manager.import_repository(
        body.owner, body.repo, ref=body.ref, credential=credential, strategy=body.strategy,
    )
    return ImportResponse(
        work_dir=result.work_dir,
        repository=result.owner_repo,
        ref=result.ref,
        strategy=result.strategy,
        outcome=result.outcome.value,
        files_written=result.files_written,
        truncated=result.truncated,
        warnings=result.warnings,
    )


@router.post("/local", response_model=LocalRepositoryResponse)
async def create_local_repository(
    body: LocalRepositoryRequest,
    manager: WorkspaceManager = Depends(get_manager),
):
    """Create an empty local-only repository."""
    work_dir = await manager.create_local(body.name, body.default_branch)
    logger.info("Created local repository", work_dir=work_dir, branch=body.default_branch)
    return LocalRepositoryResponse(work_dir=work_dir, default_branch=body.default_branch)


@router.get("/workspaces/{owner}/{repo}/tree", response_model=TreeResponse)
@router.get("/local/{name}/tree", response_model=TreeResponse)
async def get_tree(
    work_dir: str = Depends(resolve_work_dir),
    manager: WorkspaceManager = Depends(get_manager),
):
    """Snapshot of the working tree."""
    entries = await manager.files_for(work_dir).list_tree()
    return TreeResponse(work_dir=work_dir, tree=[entry.to_dict() for entry in entries])


@router.get("/workspaces/{owner}/{repo}/files", response_model=FileContentResponse)
@router.get("/local/{name}/files", response_model=FileContentResponse)
async def read_file(
    path: str = Query(..., min_length=1),
    work_dir: str = Depends(resolve_work_dir),
    manager: WorkspaceManager = Depends(get_manager),
):
    """Read a text file."""
    try:
        content = await manager.files_for(work_dir).read_text(path)
    except UnicodeDecodeError:
        raise HTTPException(status_code=415, detail=f"Binary file: {path}")
    return FileContentResponse(path=path, content=content)


@router.put("/workspaces/{owner}/{repo}/files", response_model=FileContentResponse)
@router.put("/local/{name}/files", response_model=FileContentResponse)
async def write_file(
    body: FileWriteRequest,
    work_dir: str = Depends(resolve_work_dir),
    manager: WorkspaceManager = Depends(get_manager),
):
    """Create or overwrite a text file."""
    await manager.files_for(work_dir).write_text(body.path, body.content)
    return FileContentResponse(path=body.path, content=body.content)


@router.post("/workspaces/{owner}/{repo}/folders")
@router.post("/local/{name}/folders")
async def create_folder(
    body: FolderCreateRequest,
    work_dir: str = Depends(resolve_work_dir),
    manager: WorkspaceManager = Depends(get_manager),
):
    """Create a folder and its missing parents."""
    await manager.files_for(work_dir).create_folder(body.path)
    return {"path": body.path, "created": True}


@router.get("/workspaces/{owner}/{repo}/search", response_model=SearchResponse)
@router.get("/local/{name}/search", response_model=SearchResponse)
async def search(
    q: str = Query(..., min_length=1, description="Case-insensitive substring"),
    work_dir: str = Depends(resolve_work_dir),
    manager: WorkspaceManager = Depends(get_manager),
):
    """Search every file of the workspace."""
    hits = await manager.search_for(work_dir).search(q)
    return SearchResponse(
        query=q,
        results=[SearchHitModel(file=h.file, line=h.line, content=h.content) for h in hits],
    )
