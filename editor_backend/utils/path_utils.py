"""
Path conventions for workspaces and archive entries.
"""

import re
from pathlib import PurePosixPath
from typing import Optional

from .error_handling import InvalidPathError

WORKSPACES_ROOT = "/workspaces"
LOCAL_ROOT = "/local"
METADATA_DIR = ".git"

_NAME_RE = re.compile(r"^[A-Za-z0-9._-]+$")


def validate_name(value: str, kind: str) -> str:
    """Owner, repository and local names are single path segments."""
    if not value or not _NAME_RE.match(value) or value in (".", ".."):
        raise InvalidPathError(str(value), f"invalid {kind} name")
    return value


def remote_workdir(owner: str, repo: str) -> str:
    """Working directory of an imported remote repository."""
    validate_name(owner, "owner")
    validate_name(repo, "repository")
    return f"{WORKSPACES_ROOT}/{owner}/{repo}"


def local_workdir(name: str) -> str:
    """Working directory of a local-only repository."""
    validate_name(name, "repository")
    return f"{LOCAL_ROOT}/{name}"


def normalize_path(raw: str) -> str:
    """
    Normalize a relative path to forward-slash form.

    Rejects:
      - ../ traversal
      - absolute paths
      - empty paths
    Backslashes are treated as separators.
    """
    if raw is None or not raw.strip():
        raise InvalidPathError(str(raw), "empty path")

    cleaned = raw.replace("\\", "/")
    if cleaned.startswith("/"):
        raise InvalidPathError(raw, "absolute path not allowed")

    parts = []
    for part in PurePosixPath(cleaned).parts:
        if part == "..":
            raise InvalidPathError(raw, "traversal not allowed")
        if part == ".":
            continue
        parts.append(part)

    if not parts:
        raise InvalidPathError(raw, "empty path")
    return "/".join(parts)


def workspace_path(raw: str) -> str:
    """normalize_path that also refuses anything inside version-control metadata."""
    rel = normalize_path(raw)
    if any(part.lower() == METADATA_DIR for part in rel.split("/")):
        raise InvalidPathError(raw, "version control metadata is not accessible")
    return rel


def normalize_absolute(path: str) -> str:
    """Collapse an absolute virtual path: duplicate and trailing slashes are dropped."""
    parts = [p for p in path.replace("\\", "/").split("/") if p and p != "."]
    if ".." in parts:
        raise InvalidPathError(path, "traversal not allowed")
    return "/" + "/".join(parts)


def join_path(base: str, relative: str) -> str:
    """Join a virtual directory and a relative path."""
    return normalize_absolute(f"{base}/{normalize_path(relative)}")


def parent_path(path: str) -> Optional[str]:
    """Parent directory of a virtual path, or None for the root."""
    normalized = normalize_absolute(path)
    if normalized == "/":
        return None
    return normalized.rsplit("/", 1)[0] or "/"


def strip_first_segment(name: str) -> str:
    """
    Drop the synthetic root folder archives wrap their contents in.

    "repo-ref/src/a.ts" -> "src/a.ts"; "repo-ref/" -> "".
    """
    parts = name.split("/", 1)
    return parts[1] if len(parts) == 2 else ""
