"""
Composition root for the editor backend.
Owns the virtual filesystem and the GitHub service and hands them to every
component that needs them.
"""

from typing import Optional, Union

import structlog

from ..config.settings import Settings, get_settings
from ..models.workspace import ImportResult, ImportStrategy, ProgressCallback
from ..services.git_operations import GitOperations
from ..services.repository_importer import RepositoryImporter
from ..services.search_service import SearchService
from ..services.virtual_filesystem import VirtualFileSystem, WorkspaceFiles
from ..utils.github_utils import GitHubAPIClient, GitHubService
from ..utils.path_utils import local_workdir, remote_workdir

logger = structlog.get_logger(__name__)


class FeatureDisabledError(Exception):
    """Raised when a feature is switched off in features.yaml."""


class WorkspaceManager:
    """Wires the filesystem, remote API, importer and per-workspace services."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        vfs: Optional[VirtualFileSystem] = None,
        github: Optional[GitHubService] = None,
    ):
        self.settings = settings or get_settings()
        self.vfs = vfs or VirtualFileSystem(self.settings.vfs_root)
        self.github = github or GitHubService(GitHubAPIClient(
            base_url=self.settings.github_api_url,
            timeout=self.settings.http_timeout_seconds,
            user_agent=self.settings.user_agent,
            cache_ttl=self.settings.api_cache_ttl_seconds,
            cache_size=self.settings.api_cache_size,
        ))
        self.importer = RepositoryImporter(
            self.vfs,
            self.github,
            concurrency=self.settings.blob_fetch_concurrency,
            web_url=self.settings.github_web_url,
            git_factory=self.git_for,
        )

    # ------------------------------------------------------------------
    # Per-workspace services
    # ------------------------------------------------------------------

    def git_for(self, work_dir: str) -> GitOperations:
        return GitOperations(
            self.vfs,
            work_dir,
            author_name=self.settings.git_author_name,
            author_email=self.settings.git_author_email,
            remote_name=self.settings.git_remote_name,
        )

    def files_for(self, work_dir: str) -> WorkspaceFiles:
        return WorkspaceFiles(self.vfs, work_dir)

    def search_for(self, work_dir: str) -> SearchService:
        return SearchService(self.files_for(work_dir))

    @staticmethod
    def remote_workdir(owner: str, repo: str) -> str:
        return remote_workdir(owner, repo)

    @staticmethod
    def local_workdir(name: str) -> str:
        return local_workdir(name)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def import_repository(
        self,
        owner: str,
        repo: str,
        ref: Optional[str] = None,
        credential: Optional[str] = None,
        strategy: Optional[Union[ImportStrategy, str]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ImportResult:
        """Import a remote repository with the requested (or configured) strategy."""
        chosen = ImportStrategy(strategy or self.settings.default_import_strategy)
        if not self.settings.is_feature_enabled(f"{chosen.value}_strategy"):
            raise FeatureDisabledError(f"Import strategy '{chosen.value}' is disabled")
        return await self.importer.import_repository(chosen, owner, repo, ref, credential, on_progress)

    async def create_local(self, name: str, default_branch: str = "main") -> str:
        """Create a local-only repository."""
        if not self.settings.is_feature_enabled("local_repositories"):
            raise FeatureDisabledError("Local repositories are disabled")
        return await self.importer.init_local(name, default_branch)

    async def push(self, work_dir: str, credential: Optional[str]) -> str:
        if not self.settings.is_feature_enabled("push"):
            raise FeatureDisabledError("Push is disabled")
        return await self.git_for(work_dir).push(credential)

    async def close(self) -> None:
        await self.github.close()
        logger.info("Workspace manager closed")
