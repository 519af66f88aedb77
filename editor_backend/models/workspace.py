"""
Domain models for workspaces, remote trees and imports.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple


class ImportStrategy(str, Enum):
    """Acquisition strategies supported by the importer."""
    TARBALL = "tarball"
    ZIPBALL = "zipball"
    TREE = "tree"


class EntryKind(str, Enum):
    """Kinds of entries in a remote tree listing."""
    BLOB = "blob"
    TREE = "tree"


class ImportOutcome(str, Enum):
    """Outcome of an import whose files were written."""
    SUCCESS = "success"
    SUCCESS_WITH_WARNINGS = "success_with_warnings"


ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class FileStat:
    """Result of a stat call on the virtual filesystem."""
    is_directory: bool
    size: int = 0


@dataclass(frozen=True)
class TreeEntry:
    """A node of a working tree snapshot; directories own their children."""
    id: str
    name: str
    path: str
    is_directory: bool = False
    children: Optional[Tuple["TreeEntry", ...]] = None

    def to_dict(self) -> dict:
        data = {"id": self.id, "name": self.name, "path": self.path, "is_directory": self.is_directory}
        if self.is_directory:
            data["children"] = [child.to_dict() for child in self.children or ()]
        return data


@dataclass(frozen=True)
class RemoteBlobDescriptor:
    """An entry of the remote recursive tree listing."""
    path: str
    kind: EntryKind
    sha: str

    @property
    def is_directory(self) -> bool:
        return self.kind == EntryKind.TREE


@dataclass
class RemoteTree:
    """Recursive tree listing; truncated listings may be missing deep paths."""
    entries: List[RemoteBlobDescriptor]
    truncated: bool = False

    @property
    def directories(self) -> List[RemoteBlobDescriptor]:
        return [e for e in self.entries if e.kind == EntryKind.TREE]

    @property
    def blobs(self) -> List[RemoteBlobDescriptor]:
        return [e for e in self.entries if e.kind == EntryKind.BLOB]


@dataclass(frozen=True)
class ArchiveEntry:
    """A decoded archive member: path relative to the working tree and its bytes."""
    path: str
    content: bytes


@dataclass
class ImportSession:
    """Progress of a single import call."""
    owner_repo: str
    ref: str
    completed_count: int = 0
    total_count: int = 0
    on_progress: Optional[ProgressCallback] = None

    def start(self, total: int) -> None:
        self.total_count = total
        self.completed_count = 0

    def advance(self) -> None:
        self.completed_count += 1
        if self.on_progress is not None:
            self.on_progress(self.completed_count, self.total_count)


@dataclass
class ImportResult:
    """
    Result of a completed import.

    Files are the primary success condition; ``warnings`` lists secondary
    version-control wiring steps that failed without undoing the import.
    """
    work_dir: str
    owner: str
    repo: str
    ref: str
    strategy: ImportStrategy
    files_written: int = 0
    truncated: bool = False
    warnings: List[str] = field(default_factory=list)

    @property
    def outcome(self) -> ImportOutcome:
        if self.warnings:
            return ImportOutcome.SUCCESS_WITH_WARNINGS
        return ImportOutcome.SUCCESS

    @property
    def owner_repo(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class SearchHit:
    """A line matching a search query."""
    file: str
    line: int
    content: str


@dataclass
class StatusReport:
    """Working tree status split the way the git panel shows it."""
    staged: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)
    untracked: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class CommitInfo:
    """One entry of the commit log."""
    oid: str
    message: str
    author_name: str
    author_email: str
    timestamp: int
