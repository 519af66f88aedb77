"""
Tests for workspace search.
"""

import pytest

from editor_backend.models.workspace import SearchHit
from editor_backend.services.search_service import SearchService


class TestSearchService:

    @pytest.mark.asyncio
    async def test_case_insensitive_line_hits(self, workspace):
        await workspace.write_text("a.txt", "Hello\nworld\n")
        await workspace.write_text("b.txt", "WORLD")

        hits = await SearchService(workspace).search("world")

        assert hits == [
            SearchHit(file="a.txt", line=2, content="world"),
            SearchHit(file="b.txt", line=1, content="WORLD"),
        ]

    @pytest.mark.asyncio
    async def test_content_is_stripped(self, workspace):
        await workspace.write_text("src/main.py", "def main():\n    return find_me()\n")
        hits = await SearchService(workspace).search("FIND_ME")
        assert hits == [SearchHit(file="src/main.py", line=2, content="return find_me()")]

    @pytest.mark.asyncio
    async def test_binary_files_are_skipped(self, workspace):
        await workspace.write_bytes("logo.bin", b"\xff\xfeworld\x00")
        await workspace.write_text("notes.txt", "hello world")

        hits = await SearchService(workspace).search("world")

        assert [hit.file for hit in hits] == ["notes.txt"]

    @pytest.mark.asyncio
    async def test_git_metadata_is_not_searched(self, workspace):
        await workspace.vfs.write_file(f"{workspace.work_dir}/.git/config", b"[remote \"origin\"] world")
        assert await SearchService(workspace).search("world") == []

    @pytest.mark.asyncio
    async def test_empty_query(self, workspace):
        await workspace.write_text("a.txt", "anything")
        assert await SearchService(workspace).search("") == []
