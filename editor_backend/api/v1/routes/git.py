"""
Version-control routes for imported and local workspaces.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query

from editor_backend.core.workspace_manager import WorkspaceManager
from editor_backend.models.api.workspace_models import (
    BranchRequest,
    BranchResponse,
    CommitInfoModel,
    CommitRequest,
    CommitResponse,
    LogResponse,
    PathRequest,
    StatusResponse,
)
from .workspaces import get_credential, get_manager, resolve_work_dir

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/workspaces/{owner}/{repo}/git/status", response_model=StatusResponse)
@router.get("/local/{name}/git/status", response_model=StatusResponse)
async def get_status(
    work_dir: str = Depends(resolve_work_dir),
    manager: WorkspaceManager = Depends(get_manager),
):
    """Staged, modified, untracked and deleted files."""
    vcs = manager.git_for(work_dir)
    report = await vcs.status()
    return StatusResponse(
        branch=await vcs.current_branch(),
        staged=report.staged,
        modified=report.modified,
        untracked=report.untracked,
        deleted=report.deleted,
    )


@router.post("/workspaces/{owner}/{repo}/git/add")
@router.post("/local/{name}/git/add")
async def stage_path(
    body: PathRequest,
    work_dir: str = Depends(resolve_work_dir),
    manager: WorkspaceManager = Depends(get_manager),
):
    await manager.git_for(work_dir).add(body.path)
    return {"path": body.path, "staged": True}


@router.post("/workspaces/{owner}/{repo}/git/reset")
@router.post("/local/{name}/git/reset")
async def unstage_path(
    body: PathRequest,
    work_dir: str = Depends(resolve_work_dir),
    manager: WorkspaceManager = Depends(get_manager),
):
    await manager.git_for(work_dir).reset(body.path)
    return {"path": body.path, "staged": False}


@router.post("/workspaces/{owner}/{repo}/git/commit", response_model=CommitResponse)
@router.post("/local/{name}/git/commit", response_model=CommitResponse)
async def commit(
    body: CommitRequest,
    work_dir: str = Depends(resolve_work_dir),
    manager: WorkspaceManager = Depends(get_manager),
):
    """Commit the index; ``stage_all`` stages every change first."""
    oid = await manager.git_for(work_dir).commit(
        body.message,
        author_name=body.author_name,
        author_email=body.author_email,
        stage_all=body.stage_all,
    )
    return CommitResponse(oid=oid)


@router.get("/workspaces/{owner}/{repo}/git/branch", response_model=BranchResponse)
@router.get("/local/{name}/git/branch", response_model=BranchResponse)
async def get_branches(
    work_dir: str = Depends(resolve_work_dir),
    manager: WorkspaceManager = Depends(get_manager),
):
    vcs = manager.git_for(work_dir)
    return BranchResponse(current=await vcs.current_branch(), branches=await vcs.list_branches())


@router.post("/workspaces/{owner}/{repo}/git/branches", response_model=BranchResponse)
@router.post("/local/{name}/git/branches", response_model=BranchResponse)
async def create_branch(
    body: BranchRequest,
    work_dir: str = Depends(resolve_work_dir),
    manager: WorkspaceManager = Depends(get_manager),
):
    """Create a branch, checking it out unless told otherwise."""
    vcs = manager.git_for(work_dir)
    await vcs.create_branch(body.name, checkout=body.checkout)
    return BranchResponse(current=await vcs.current_branch(), branches=await vcs.list_branches())


@router.post("/workspaces/{owner}/{repo}/git/checkout", response_model=BranchResponse)
@router.post("/local/{name}/git/checkout", response_model=BranchResponse)
async def checkout(
    body: BranchRequest,
    work_dir: str = Depends(resolve_work_dir),
    manager: WorkspaceManager = Depends(get_manager),
):
    vcs = manager.git_for(work_dir)
    await vcs.checkout(body.name)
    return BranchResponse(current=await vcs.current_branch(), branches=await vcs.list_branches())


@router.post("/workspaces/{owner}/{repo}/git/push")
@router.post("/local/{name}/git/push")
async def push(
    work_dir: str = Depends(resolve_work_dir),
    manager: WorkspaceManager = Depends(get_manager),
    credential: Optional[str] = Depends(get_credential),
):
    """Push the current branch to origin with the caller's token."""
    output = await manager.push(work_dir, credential)
    logger.info("Push completed", work_dir=work_dir, authenticated=credential is not None)
    return {"pushed": True, "output": output}


@router.get("/workspaces/{owner}/{repo}/git/log", response_model=LogResponse)
@router.get("/local/{name}/git/log", response_model=LogResponse)
async def get_log(
    max_count: int = Query(50, ge=1, le=500),
    work_dir: str = Depends(resolve_work_dir),
    manager: WorkspaceManager = Depends(get_manager),
):
    commits = await manager.git_for(work_dir).log(max_count=max_count)
    return LogResponse(commits=[
        CommitInfoModel(
            oid=c.oid,
            message=c.message,
            author_name=c.author_name,
            author_email=c.author_email,
            timestamp=c.timestamp,
        )
        for c in commits
    ])
