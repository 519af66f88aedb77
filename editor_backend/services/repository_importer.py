"""
Repository importer: materializes a remote repository into a working tree.

Every strategy shares the same pipeline:

    ensure workdir -> acquire (archive or tree) -> write files
        -> init version control on ``ref`` -> register origin

Written files are the success condition. Version-control wiring is
secondary; its failures are reported as warnings on the result instead of
unwinding the import.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union

import structlog

from ..models.workspace import (
    ArchiveEntry,
    ImportResult,
    ImportSession,
    ImportStrategy,
    ProgressCallback,
)
from ..utils.error_handling import AcquisitionError, ArchiveDecodeError, VersionControlError
from ..utils.github_utils import GitHubService
from ..utils.path_utils import local_workdir, remote_workdir
from .archive_decoders import decode_tarball, decode_zipball
from .git_operations import GitOperations
from .tree_fetcher import DEFAULT_CONCURRENCY, TreeFetcher
from .virtual_filesystem import VirtualFileSystem, WorkspaceFiles

logger = structlog.get_logger(__name__)


@dataclass
class Materialized:
    """What an acquisition strategy wrote."""
    files_written: int
    truncated: bool = False


class AcquisitionStrategy(ABC):
    """Fetches a repository snapshot and writes it into a working tree."""

    name: ImportStrategy

    @abstractmethod
    async def materialize(
        self,
        files: WorkspaceFiles,
        owner: str,
        repo: str,
        ref: str,
        credential: Optional[str],
        session: ImportSession,
    ) -> Materialized:
        """Write the snapshot of ``ref`` into ``files``."""


class ArchiveStrategy(AcquisitionStrategy):
    """Downloads a single archive and writes every decoded entry."""

    archive_format = "archive"

    def __init__(self, github: GitHubService):
        self.github = github

    @abstractmethod
    async def download(self, owner: str, repo: str, ref: str, credential: Optional[str]) -> bytes:
        """Download the archive bytes."""

    @abstractmethod
    def decode(self, data: bytes) -> List[ArchiveEntry]:
        """Decode archive bytes into entries."""

    async def fetch_entries(self, owner: str, repo: str, ref: str, credential: Optional[str] = None) -> List[ArchiveEntry]:
        data = await self.download(owner, repo, ref, credential)
        logger.info("Downloaded archive", owner=owner, repo=repo, ref=ref,
                    format=self.archive_format, size=len(data))
        return await asyncio.to_thread(self.decode, data)

    async def materialize(self, files, owner, repo, ref, credential, session) -> Materialized:
        entries = await self.fetch_entries(owner, repo, ref, credential)
        session.start(len(entries))
        # Parent directories are created per entry, so order does not matter
        for entry in entries:
            await files.write_bytes(entry.path, entry.content)
            session.advance()
        return Materialized(files_written=len(entries))


class TarballStrategy(ArchiveStrategy):
    name = ImportStrategy.TARBALL
    archive_format = "tar"

    async def download(self, owner, repo, ref, credential):
        return await self.github.download_tarball(owner, repo, ref, credential)

    def decode(self, data):
        return decode_tarball(data)


class ZipballStrategy(ArchiveStrategy):
    name = ImportStrategy.ZIPBALL
    archive_format = "zip"

    async def download(self, owner, repo, ref, credential):
        return await self.github.download_zipball(owner, repo, ref, credential)

    def decode(self, data):
        return decode_zipball(data)


class TreeStrategy(AcquisitionStrategy):
    """Per-blob acquisition through the tree listing."""

    name = ImportStrategy.TREE

    def __init__(self, fetcher: TreeFetcher):
        self.fetcher = fetcher

    async def materialize(self, files, owner, repo, ref, credential, session) -> Materialized:
        tree = await self.fetcher.fetch_into(files, owner, repo, ref, credential, session)
        return Materialized(files_written=len(tree.blobs), truncated=tree.truncated)


class RepositoryImporter:
    """Imports remote repositories into the virtual filesystem."""

    def __init__(
        self,
        vfs: VirtualFileSystem,
        github: GitHubService,
        concurrency: int = DEFAULT_CONCURRENCY,
        web_url: str = "https://github.com",
        git_factory: Optional[Callable[[str], GitOperations]] = None,
    ):
        self.vfs = vfs
        self.github = github
        self.web_url = web_url.rstrip("/")
        self.git_factory = git_factory or (lambda work_dir: GitOperations(vfs, work_dir))
        self.strategies: Dict[ImportStrategy, AcquisitionStrategy] = {}
        for strategy in (
            TarballStrategy(github),
            ZipballStrategy(github),
            TreeStrategy(TreeFetcher(github, concurrency)),
        ):
            self.register_strategy(strategy)

    def register_strategy(self, strategy: AcquisitionStrategy) -> None:
        self.strategies[strategy.name] = strategy

    def get_strategy(self, strategy: Union[ImportStrategy, str]) -> AcquisitionStrategy:
        try:
            key = ImportStrategy(strategy)
        except ValueError as e:
            raise ValueError(f"Unknown import strategy: {strategy}") from e
        if key not in self.strategies:
            raise ValueError(f"Import strategy not available: {key.value}")
        return self.strategies[key]

    def remote_url(self, owner: str, repo: str) -> str:
        return f"{self.web_url}/{owner}/{repo}.git"

    async def import_repository(
        self,
        strategy: Union[ImportStrategy, str],
        owner: str,
        repo: str,
        ref: Optional[str] = None,
        credential: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ImportResult:
        """
        Import ``owner/repo`` at ``ref`` using the given acquisition strategy.

        Acquisition and decode failures propagate; the working tree may be
        left partially written and a later import overwrites it.
        """
        acquisition = self.get_strategy(strategy)
        owner_repo = f"{owner}/{repo}"
        work_dir = remote_workdir(owner, repo)

        if not ref:
            ref = await self.github.get_default_branch(owner, repo, credential)

        files = WorkspaceFiles(self.vfs, work_dir)
        await files.ensure_workdir()

        session = ImportSession(owner_repo=owner_repo, ref=ref, on_progress=on_progress)
        logger.info("Starting repository import", repository=owner_repo, ref=ref,
                    strategy=acquisition.name.value, work_dir=work_dir)

        try:
            materialized = await acquisition.materialize(files, owner, repo, ref, credential, session)
        except AcquisitionError as e:
            if e.repository is None:
                e.repository = owner_repo
                e.details["repository"] = owner_repo
            logger.error("Repository import failed", repository=owner_repo, ref=ref, error=e.user_message())
            raise
        except ArchiveDecodeError as e:
            logger.error("Repository import failed", repository=owner_repo, ref=ref,
                         error=e.user_message(owner_repo))
            raise

        result = ImportResult(
            work_dir=work_dir,
            owner=owner,
            repo=repo,
            ref=ref,
            strategy=acquisition.name,
            files_written=materialized.files_written,
            truncated=materialized.truncated,
        )
        await self._wire_version_control(result)

        logger.info("Repository import finished", repository=owner_repo, ref=ref,
                    files=result.files_written, truncated=result.truncated,
                    outcome=result.outcome.value)
        return result

    async def _wire_version_control(self, result: ImportResult) -> None:
        vcs = self.git_factory(result.work_dir)
        try:
            await vcs.init(result.ref)
        except VersionControlError as e:
            result.warnings.append(f"Version control init failed: {e.message}")
            logger.warning("Version control init failed", work_dir=result.work_dir, error=e.message)
        try:
            await vcs.set_remote(self.remote_url(result.owner, result.repo))
        except VersionControlError as e:
            result.warnings.append(f"Setting remote origin failed: {e.message}")
            logger.warning("Setting remote origin failed", work_dir=result.work_dir, error=e.message)

    async def init_local(self, name: str, default_branch: str = "main") -> str:
        """Create an empty local-only repository and return its working directory."""
        work_dir = local_workdir(name)
        await WorkspaceFiles(self.vfs, work_dir).ensure_workdir()
        await self.git_factory(work_dir).init(default_branch)
        return work_dir
