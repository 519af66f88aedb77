"""
Line-oriented, case-insensitive substring search over a working tree.
"""

from typing import List

import structlog

from ..models.workspace import SearchHit
from ..utils.error_handling import FileSystemError
from .virtual_filesystem import WorkspaceFiles

logger = structlog.get_logger(__name__)


class SearchService:
    """Scans every file of a workspace for a query."""

    def __init__(self, files: WorkspaceFiles):
        self.files = files

    async def search(self, query: str) -> List[SearchHit]:
        """
        Return ``(file, line, content)`` hits in file enumeration order, then line order.

        Line numbers are 1-based and content is the stripped line. Files that
        do not decode as UTF-8 are treated as binary and skipped.
        """
        if not query:
            return []

        needle = query.lower()
        hits: List[SearchHit] = []
        skipped = 0

        for rel in await self.files.list_files():
            try:
                text = await self.files.read_text(rel)
            except (UnicodeDecodeError, FileSystemError):
                skipped += 1
                continue
            for index, line in enumerate(text.split("\n"), start=1):
                if needle in line.lower():
                    hits.append(SearchHit(file=rel, line=index, content=line.strip()))

        logger.debug("Search finished", work_dir=self.files.work_dir, hits=len(hits), skipped=skipped)
        return hits
