"""
Error taxonomy for repository import and workspace operations.

Acquisition and decode failures are fatal to an import and carry enough
context to build a single human-readable message. Version-control wiring
failures during import are downgraded to warnings by the importer.
"""

import time
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Error category enumeration for classification."""
    ACQUISITION = "acquisition"
    DECODE = "decode"
    FILESYSTEM = "filesystem"
    VERSION_CONTROL = "version_control"
    VALIDATION = "validation"
    NETWORK = "network"


class EditorError(Exception):
    """Base exception for editor backend operations."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.details = details or {}
        self.timestamp = time.time()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for API responses."""
        return {
            "error": self.message,
            "category": self.category.value,
            "details": self.details,
        }


class AcquisitionError(EditorError):
    """Remote content could not be acquired (archive, tree listing or blob)."""

    def __init__(
        self,
        message: str,
        repository: Optional[str] = None,
        status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = dict(details or {})
        if repository:
            details["repository"] = repository
        if status is not None:
            details["status"] = status
        super().__init__(message, ErrorCategory.ACQUISITION, details)
        self.repository = repository
        self.status = status

    def user_message(self) -> str:
        """Single human-readable message naming the repository and the cause."""
        target = self.repository or "repository"
        return f"Failed to import {target}: {self.message}"


class BlobFetchError(AcquisitionError):
    """A single blob fetch failed; the whole tree import fails with it."""

    def __init__(
        self,
        path: str,
        cause: Exception,
        repository: Optional[str] = None,
    ):
        status = getattr(cause, "status", None)
        super().__init__(
            f"Failed to fetch blob '{path}': {cause}",
            repository=repository,
            status=status,
            details={"path": path},
        )
        self.path = path
        self.cause = cause


class ArchiveDecodeError(EditorError):
    """The downloaded archive could not be decoded."""

    def __init__(self, message: str, archive_format: str, details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        details["format"] = archive_format
        super().__init__(message, ErrorCategory.DECODE, details)
        self.archive_format = archive_format

    def user_message(self, repository: Optional[str] = None) -> str:
        target = repository or "repository"
        return f"Failed to import {target}: corrupt {self.archive_format} archive ({self.message})"


class FileSystemError(EditorError):
    """Virtual filesystem operation failed."""

    def __init__(self, message: str, path: str, details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        details["path"] = path
        super().__init__(message, ErrorCategory.FILESYSTEM, details)
        self.path = path


class FileNotFoundInWorkspace(FileSystemError):
    """Requested path does not exist in the virtual filesystem."""

    def __init__(self, path: str):
        super().__init__(f"No such file or directory: {path}", path)


class InvalidPathError(EditorError):
    """A path escapes its root or is otherwise malformed."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Invalid path {path!r}: {reason}", ErrorCategory.VALIDATION, {"path": path})
        self.path = path


class VersionControlError(EditorError):
    """The version-control engine rejected an operation."""

    def __init__(self, message: str, operation: str, details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        details["operation"] = operation
        super().__init__(message, ErrorCategory.VERSION_CONTROL, details)
        self.operation = operation
