"""
Virtual file system backing the editor's working trees.

Paths are absolute virtual paths such as ``/workspaces/owner/repo/src/a.ts``.
They are mapped under a backing directory on disk, which keeps the store
persistent across restarts and lets the version-control engine operate on
the same files. Every read and write is a suspension point: blocking I/O
runs in a worker thread so imports can interleave network requests.
"""

import asyncio
import os
import shutil
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import structlog

from ..models.workspace import FileStat, TreeEntry
from ..utils.error_handling import FileNotFoundInWorkspace, FileSystemError, InvalidPathError
from ..utils.path_utils import METADATA_DIR, join_path, normalize_absolute, parent_path, workspace_path

logger = structlog.get_logger(__name__)

HIDDEN_NAMES: Tuple[str, ...] = (METADATA_DIR,)


class VirtualFileSystem:
    """Path-addressed byte store rooted at a backing directory."""

    def __init__(self, root_dir: str):
        self.root_dir = Path(root_dir).resolve()
        self._initialized = False

    def _ensure_root(self) -> None:
        if not self._initialized:
            self.root_dir.mkdir(parents=True, exist_ok=True)
            self._initialized = True
            logger.info("Initialized virtual filesystem", root=str(self.root_dir))

    def resolve(self, path: str) -> Path:
        """Map a virtual path to its location in the backing directory."""
        self._ensure_root()
        normalized = normalize_absolute(path)
        if normalized == "/":
            return self.root_dir
        resolved = self.root_dir.joinpath(*normalized.strip("/").split("/"))
        if self.root_dir != resolved and self.root_dir not in resolved.parents:
            raise InvalidPathError(path, "escapes filesystem root")
        return resolved

    # ------------------------------------------------------------------
    # Primitive operations
    # ------------------------------------------------------------------

    async def ensure_directory(self, path: str) -> None:
        """Create a directory and every missing ancestor; existing directories are fine."""
        target = self.resolve(path)

        def _mkdirs():
            try:
                target.mkdir(parents=True, exist_ok=True)
            except FileExistsError as e:
                raise FileSystemError(f"Not a directory: {path}", path) from e
            except NotADirectoryError as e:
                raise FileSystemError(f"Not a directory: {path}", path) from e

        await asyncio.to_thread(_mkdirs)

    async def read_file(self, path: str) -> bytes:
        """Read a file's bytes."""
        target = self.resolve(path)

        def _read():
            try:
                return target.read_bytes()
            except FileNotFoundError as e:
                raise FileNotFoundInWorkspace(path) from e
            except IsADirectoryError as e:
                raise FileSystemError(f"Is a directory: {path}", path) from e
            except NotADirectoryError as e:
                raise FileNotFoundInWorkspace(path) from e

        return await asyncio.to_thread(_read)

    async def write_file(self, path: str, data: bytes) -> None:
        """Write bytes to a file, creating missing parent directories first."""
        parent = parent_path(path)
        if parent:
            await self.ensure_directory(parent)
        target = self.resolve(path)

        def _write():
            try:
                target.write_bytes(data)
            except IsADirectoryError as e:
                raise FileSystemError(f"Is a directory: {path}", path) from e

        await asyncio.to_thread(_write)

    async def list_directory(self, path: str) -> List[str]:
        """Names in a directory, sorted; a missing directory lists as empty."""
        target = self.resolve(path)

        def _list():
            try:
                return sorted(os.listdir(target))
            except (FileNotFoundError, NotADirectoryError):
                return []

        return await asyncio.to_thread(_list)

    async def stat(self, path: str) -> FileStat:
        """Stat a path; raises FileNotFoundInWorkspace when it does not exist."""
        target = self.resolve(path)

        def _stat():
            try:
                st = target.stat()
            except (FileNotFoundError, NotADirectoryError) as e:
                raise FileNotFoundInWorkspace(path) from e
            return FileStat(is_directory=target.is_dir(), size=st.st_size)

        return await asyncio.to_thread(_stat)

    async def exists(self, path: str) -> bool:
        try:
            await self.stat(path)
            return True
        except FileNotFoundInWorkspace:
            return False

    async def remove_tree(self, path: str) -> None:
        """Delete a directory tree or a file; missing paths are ignored."""
        target = self.resolve(path)
        if target == self.root_dir:
            raise InvalidPathError(path, "refusing to remove filesystem root")

        def _remove():
            if target.is_dir():
                shutil.rmtree(target)
            elif target.exists():
                target.unlink()

        await asyncio.to_thread(_remove)

    # ------------------------------------------------------------------
    # Walks
    # ------------------------------------------------------------------

    async def walk_files(self, base: str, hidden: Sequence[str] = HIDDEN_NAMES) -> List[str]:
        """Relative paths of every file under ``base``, in sorted enumeration order."""
        base = normalize_absolute(base)
        files: List[str] = []

        async def _walk(directory: str, prefix: str) -> None:
            for name in await self.list_directory(directory):
                if name in hidden:
                    continue
                full = f"{directory}/{name}"
                try:
                    info = await self.stat(full)
                except FileSystemError:
                    continue
                rel = f"{prefix}{name}"
                if info.is_directory:
                    await _walk(full, f"{rel}/")
                else:
                    files.append(rel)

        await _walk(base, "")
        return files

    async def list_tree(self, base: str, hidden: Sequence[str] = HIDDEN_NAMES) -> List[TreeEntry]:
        """
        Build a fresh snapshot of the directory hierarchy under ``base``.

        Nodes that cannot be stat'ed are skipped and unreadable directories
        list as empty, so a partially corrupt tree can still be browsed.
        """
        base = normalize_absolute(base)

        async def _walk(directory: str) -> Tuple[TreeEntry, ...]:
            nodes = []
            for name in await self.list_directory(directory):
                if name in hidden:
                    continue
                full = f"{directory}/{name}"
                try:
                    info = await self.stat(full)
                except FileSystemError:
                    continue
                rel = full[len(base) + 1:] if base != "/" else full[1:]
                if info.is_directory:
                    children = await _walk(full)
                    nodes.append(TreeEntry(id=rel, name=name, path=rel, is_directory=True, children=children))
                else:
                    nodes.append(TreeEntry(id=rel, name=name, path=rel))
            return tuple(nodes)

        return list(await _walk(base))


class WorkspaceFiles:
    """File helpers bound to one working directory."""

    def __init__(self, vfs: VirtualFileSystem, work_dir: str):
        self.vfs = vfs
        self.work_dir = normalize_absolute(work_dir)

    def path(self, relative: str) -> str:
        """Absolute path of a workspace file; version-control metadata is off limits."""
        return join_path(self.work_dir, workspace_path(relative))

    async def ensure_workdir(self) -> None:
        await self.vfs.ensure_directory(self.work_dir)

    async def read_bytes(self, relative: str) -> bytes:
        return await self.vfs.read_file(self.path(relative))

    async def read_text(self, relative: str, encoding: str = "utf-8") -> str:
        """Decode a file as text; raises UnicodeDecodeError for binary content."""
        data = await self.read_bytes(relative)
        return data.decode(encoding)

    async def write_bytes(self, relative: str, data: bytes) -> None:
        await self.vfs.write_file(self.path(relative), data)

    async def write_text(self, relative: str, content: str, encoding: str = "utf-8") -> None:
        await self.write_bytes(relative, content.encode(encoding))

    async def create_file(self, relative: str) -> None:
        await self.write_bytes(relative, b"")

    async def create_folder(self, relative: str) -> None:
        await self.vfs.ensure_directory(self.path(relative))

    async def list_tree(self) -> List[TreeEntry]:
        return await self.vfs.list_tree(self.work_dir)

    async def list_files(self) -> List[str]:
        return await self.vfs.walk_files(self.work_dir)

    async def exists(self, relative: Optional[str] = None) -> bool:
        return await self.vfs.exists(self.path(relative) if relative else self.work_dir)
