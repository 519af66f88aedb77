from typing import List, Optional, Dict, Any

from pydantic import BaseModel, Field

from ..workspace import ImportStrategy


# --- Import Models ---

class ImportRequest(BaseModel):
    """Remote repository import request"""
    owner: str = Field(..., min_length=1, max_length=100, description="Repository owner")
    repo: str = Field(..., min_length=1, max_length=100, description="Repository name")
    ref: Optional[str] = Field(None, description="Branch or tag; defaults to the repository's default branch")
    strategy: Optional[ImportStrategy] = Field(None, description="Acquisition strategy")


class ImportResponse(BaseModel):
    """Outcome of a completed import"""
    work_dir: str
    repository: str
    ref: str
    strategy: ImportStrategy
    outcome: str
    files_written: int
    truncated: bool = Field(default=False, description="Remote tree listing was truncated")
    warnings: List[str] = Field(default_factory=list, description="Version-control wiring failures")


class LocalRepositoryRequest(BaseModel):
    """Local-only repository creation request"""
    name: str = Field(..., min_length=1, max_length=100)
    default_branch: str = Field(default="main")


class LocalRepositoryResponse(BaseModel):
    work_dir: str
    default_branch: str


# --- File Models ---

class FileContentResponse(BaseModel):
    path: str
    content: str


class FileWriteRequest(BaseModel):
    path: str = Field(..., min_length=1)
    content: str = Field(default="")


class FolderCreateRequest(BaseModel):
    path: str = Field(..., min_length=1)


class TreeResponse(BaseModel):
    work_dir: str
    tree: List[Dict[str, Any]] = Field(default_factory=list)


class SearchHitModel(BaseModel):
    file: str
    line: int
    content: str


class SearchResponse(BaseModel):
    query: str
    results: List[SearchHitModel] = Field(default_factory=list)


# --- Git Models ---

class PathRequest(BaseModel):
    path: str = Field(..., min_length=1)


class CommitRequest(BaseModel):
    message: str = Field(..., min_length=1)
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    stage_all: bool = Field(default=False, description="Stage every change before committing")


class CommitResponse(BaseModel):
    oid: str


class BranchRequest(BaseModel):
    name: str = Field(..., min_length=1)
    checkout: bool = Field(default=True)


class BranchResponse(BaseModel):
    current: str
    branches: List[str] = Field(default_factory=list)


class StatusResponse(BaseModel):
    branch: str
    staged: List[str] = Field(default_factory=list)
    modified: List[str] = Field(default_factory=list)
    untracked: List[str] = Field(default_factory=list)
    deleted: List[str] = Field(default_factory=list)


class CommitInfoModel(BaseModel):
    oid: str
    message: str
    author_name: str
    author_email: str
    timestamp: int


class LogResponse(BaseModel):
    commits: List[CommitInfoModel] = Field(default_factory=list)
