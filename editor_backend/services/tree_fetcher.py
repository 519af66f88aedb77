"""
Incremental repository acquisition: recursive tree listing plus per-blob fetches.

Blob fetches run through a bounded pool so that at most ``concurrency``
requests are in flight against the rate-limited API. The first failing
blob fails the whole operation and names the failing path.
"""

import asyncio
import base64
import binascii
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

import structlog

from ..models.workspace import EntryKind, ImportSession, RemoteBlobDescriptor, RemoteTree
from ..utils.error_handling import AcquisitionError, BlobFetchError, FileSystemError, InvalidPathError
from ..utils.github_utils import GitHubService
from ..utils.path_utils import workspace_path
from .virtual_filesystem import WorkspaceFiles

logger = structlog.get_logger(__name__)

DEFAULT_CONCURRENCY = 8

T = TypeVar("T")


async def run_bounded(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[Any]],
    limit: int = DEFAULT_CONCURRENCY,
) -> None:
    """
    Run ``worker`` over ``items`` with at most ``limit`` calls in flight.

    Work is started in listing order from a cursor; completion order is
    whatever the responses dictate. The first exception stops new work,
    cancels whatever is still running and propagates.
    """
    if limit < 1:
        raise ValueError("limit must be at least 1")

    cursor = 0
    active = set()
    try:
        while cursor < len(items) or active:
            while cursor < len(items) and len(active) < limit:
                active.add(asyncio.ensure_future(worker(items[cursor])))
                cursor += 1
            done, active = await asyncio.wait(active, return_when=asyncio.FIRST_COMPLETED)
            # Every failure in the batch is retrieved; the first one propagates
            errors = [task.exception() for task in done if not task.cancelled()]
            errors = [error for error in errors if error is not None]
            if errors:
                raise errors[0]
    finally:
        for task in active:
            task.cancel()
        if active:
            await asyncio.gather(*active, return_exceptions=True)


def decode_blob_content(payload: Dict[str, Any]) -> bytes:
    """Decode a blob payload's transport encoding into raw bytes."""
    content = payload.get("content") or ""
    encoding = (payload.get("encoding") or "base64").lower()
    if encoding == "base64":
        try:
            return base64.b64decode(content)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"invalid base64 content: {e}") from e
    if encoding in ("utf-8", "utf8"):
        return content.encode("utf-8")
    raise ValueError(f"unsupported blob encoding: {encoding}")


def parse_tree_listing(payload: Dict[str, Any]) -> RemoteTree:
    """Turn a recursive tree response into descriptors; unknown kinds (submodules) are dropped."""
    entries: List[RemoteBlobDescriptor] = []
    for item in payload.get("tree", []):
        kind = item.get("type")
        if kind not in (EntryKind.BLOB.value, EntryKind.TREE.value):
            continue
        try:
            path = workspace_path(item.get("path", ""))
        except InvalidPathError:
            logger.warning("Skipping tree entry with unsafe path", path=item.get("path"))
            continue
        entries.append(RemoteBlobDescriptor(path=path, kind=EntryKind(kind), sha=item.get("sha", "")))
    return RemoteTree(entries=entries, truncated=bool(payload.get("truncated", False)))


class TreeFetcher:
    """Walks a remote tree listing and writes each blob into a working tree."""

    def __init__(self, github: GitHubService, concurrency: int = DEFAULT_CONCURRENCY):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.github = github
        self.concurrency = concurrency

    async def fetch_tree(self, owner: str, repo: str, ref: str, credential: Optional[str] = None) -> RemoteTree:
        """Fetch the recursive tree listing for ``ref``."""
        payload = await self.github.get_tree(owner, repo, ref, credential)
        tree = parse_tree_listing(payload)
        if tree.truncated:
            logger.warning(
                "Remote tree listing was truncated; deep paths may be missing",
                owner=owner, repo=repo, ref=ref, entries=len(tree.entries),
            )
        return tree

    async def fetch_blob(
        self,
        owner: str,
        repo: str,
        descriptor: RemoteBlobDescriptor,
        credential: Optional[str] = None,
    ) -> bytes:
        """Fetch and decode one blob."""
        payload = await self.github.get_blob(owner, repo, descriptor.sha, credential)
        return decode_blob_content(payload)

    async def fetch_into(
        self,
        files: WorkspaceFiles,
        owner: str,
        repo: str,
        ref: str,
        credential: Optional[str] = None,
        session: Optional[ImportSession] = None,
    ) -> RemoteTree:
        """
        Materialize the remote tree into ``files``.

        Directories are created first, then blobs are fetched through the
        bounded pool. Returns the listing so callers can see ``truncated``.
        """
        tree = await self.fetch_tree(owner, repo, ref, credential)
        owner_repo = f"{owner}/{repo}"

        for directory in tree.directories:
            await files.create_folder(directory.path)

        blobs = tree.blobs
        if session is not None:
            session.start(len(blobs))

        async def _fetch_and_write(descriptor: RemoteBlobDescriptor) -> None:
            try:
                data = await self.fetch_blob(owner, repo, descriptor, credential)
                await files.write_bytes(descriptor.path, data)
            except (AcquisitionError, FileSystemError, ValueError, asyncio.TimeoutError) as e:
                raise BlobFetchError(descriptor.path, e, repository=owner_repo) from e
            if session is not None:
                session.advance()

        await run_bounded(blobs, _fetch_and_write, self.concurrency)

        logger.info(
            "Fetched repository tree",
            owner=owner, repo=repo, ref=ref,
            directories=len(tree.directories), blobs=len(blobs), truncated=tree.truncated,
        )
        return tree
