"""
Version-control facade over GitPython, bound to one working directory.
"""

import asyncio
import os
from typing import Callable, List, Optional, TypeVar

import git
import structlog

from ..models.workspace import CommitInfo, StatusReport
from ..utils.auth_utils import git_auth_env, mask_token
from ..utils.error_handling import VersionControlError
from .virtual_filesystem import VirtualFileSystem

logger = structlog.get_logger(__name__)

T = TypeVar("T")

GIT_ERRORS = (git.GitError,)


class GitOperations:
    """Stage, commit, branch and push operations on a workspace."""

    def __init__(
        self,
        vfs: VirtualFileSystem,
        work_dir: str,
        author_name: str = "User",
        author_email: str = "user@example.com",
        remote_name: str = "origin",
    ):
        self.work_dir = work_dir
        self.path = vfs.resolve(work_dir)
        self.author = git.Actor(author_name, author_email)
        self.remote_name = remote_name

    async def _run(self, operation: str, fn: Callable[[], T]) -> T:
        def _call():
            try:
                return fn()
            except GIT_ERRORS as e:
                raise VersionControlError(str(e), operation, {"work_dir": self.work_dir}) from e

        return await asyncio.to_thread(_call)

    def _repo(self) -> git.Repo:
        return git.Repo(self.path)

    def _env(self, credential: Optional[str]) -> dict:
        env = dict(os.environ)
        env.update(git_auth_env(credential))
        return env

    # ------------------------------------------------------------------
    # Repository wiring
    # ------------------------------------------------------------------

    async def init(self, default_branch: str = "main") -> None:
        """
        Initialize version-control metadata with ``default_branch`` as HEAD.

        Re-initializing an existing repository keeps its history and remotes
        but still points HEAD at ``default_branch``.
        """
        def _init():
            repo = git.Repo.init(self.path, mkdir=True, initial_branch=default_branch)
            repo.git.symbolic_ref("HEAD", f"refs/heads/{default_branch}")

        await self._run("init", _init)
        logger.info("Initialized repository", work_dir=self.work_dir, branch=default_branch)

    async def set_remote(self, url: str, name: Optional[str] = None) -> None:
        """Register a remote, overwriting any existing URL for it."""
        name = name or self.remote_name

        def _set_remote():
            repo = self._repo()
            if name in [remote.name for remote in repo.remotes]:
                repo.remote(name).set_url(url)
            else:
                repo.create_remote(name, url)

        await self._run("set_remote", _set_remote)

    async def remote_url(self, name: Optional[str] = None) -> Optional[str]:
        name = name or self.remote_name

        def _url():
            repo = self._repo()
            if name not in [remote.name for remote in repo.remotes]:
                return None
            return repo.remote(name).url

        return await self._run("remote_url", _url)

    async def clone(self, url: str, credential: Optional[str] = None) -> None:
        """Clone ``url`` into the working directory."""
        def _clone():
            git.Repo.clone_from(url, self.path, env=self._env(credential))

        await self._run("clone", _clone)
        logger.info("Cloned repository", work_dir=self.work_dir)

    # ------------------------------------------------------------------
    # Status and staging
    # ------------------------------------------------------------------

    async def status(self) -> StatusReport:
        def _status():
            repo = self._repo()
            report = StatusReport()
            if repo.head.is_valid():
                report.staged = sorted({d.a_path or d.b_path for d in repo.index.diff("HEAD")})
            else:
                report.staged = sorted({path for path, _stage in repo.index.entries.keys()})
            for diff in repo.index.diff(None):
                path = diff.a_path or diff.b_path
                if diff.deleted_file:
                    report.deleted.append(path)
                else:
                    report.modified.append(path)
            report.modified.sort()
            report.deleted.sort()
            report.untracked = sorted(repo.untracked_files)
            return report

        return await self._run("status", _status)

    async def add(self, path: str) -> None:
        """Stage additions, modifications and deletions under ``path``."""
        await self._run("add", lambda: self._repo().git.add("-A", "--", path))

    async def reset(self, path: str) -> None:
        """Unstage ``path``, leaving the working tree untouched."""
        await self._run("reset", lambda: self._repo().git.reset("-q", "--", path))

    async def list_files(self) -> List[str]:
        """Files tracked in the index."""
        def _ls():
            output = self._repo().git.ls_files()
            return [line for line in output.splitlines() if line]

        return await self._run("list_files", _ls)

    # ------------------------------------------------------------------
    # Commits and branches
    # ------------------------------------------------------------------

    async def commit(
        self,
        message: str,
        author_name: Optional[str] = None,
        author_email: Optional[str] = None,
        stage_all: bool = False,
    ) -> str:
        """Commit the index and return the new commit id."""
        if not message or not message.strip():
            raise VersionControlError("Commit message must not be empty", "commit")
        actor = git.Actor(author_name or self.author.name, author_email or self.author.email)

        def _commit():
            repo = self._repo()
            if stage_all:
                repo.git.add("-A")
                repo = self._repo()
            created = repo.index.commit(message, author=actor, committer=actor)
            return created.hexsha

        sha = await self._run("commit", _commit)
        logger.info("Created commit", work_dir=self.work_dir, commit=sha[:12])
        return sha

    async def current_branch(self) -> str:
        def _branch():
            try:
                return self._repo().active_branch.name
            except TypeError:
                # Detached HEAD
                return "main"

        return await self._run("current_branch", _branch)

    async def list_branches(self) -> List[str]:
        return await self._run("list_branches", lambda: sorted(h.name for h in self._repo().heads))

    async def create_branch(self, name: str, checkout: bool = True) -> None:
        def _create():
            repo = self._repo()
            if checkout:
                repo.git.checkout("-b", name)
            else:
                repo.git.branch(name)

        await self._run("create_branch", _create)

    async def checkout(self, name: str) -> None:
        await self._run("checkout", lambda: self._repo().git.checkout(name))

    async def push(self, credential: Optional[str] = None, remote: Optional[str] = None) -> str:
        """Push the current branch to ``remote`` using a one-off credential header."""
        remote = remote or self.remote_name

        def _push():
            repo = self._repo()
            if repo.head.is_detached:
                raise VersionControlError("Cannot push a detached HEAD", "push", {"work_dir": self.work_dir})
            branch = repo.active_branch.name
            return repo.git.push(remote, f"{branch}:{branch}", env=self._env(credential))

        output = await self._run("push", _push)
        logger.info("Pushed branch", work_dir=self.work_dir, remote=remote, credential=mask_token(credential))
        return output

    async def log(self, max_count: int = 50) -> List[CommitInfo]:
        def _log():
            repo = self._repo()
            if not repo.head.is_valid():
                return []
            return [
                CommitInfo(
                    oid=c.hexsha,
                    message=c.message.strip() if isinstance(c.message, str) else c.message.decode("utf-8", "replace"),
                    author_name=c.author.name,
                    author_email=c.author.email,
                    timestamp=c.authored_date,
                )
                for c in repo.iter_commits(max_count=max_count)
            ]

        return await self._run("log", _log)

