"""
Tests for the incremental tree fetcher and its bounded pool.
"""

import asyncio
import base64
import gc

import pytest
from aiohttp import test_utils, web

from editor_backend.models.workspace import ImportSession
from editor_backend.services.tree_fetcher import (
    DEFAULT_CONCURRENCY,
    TreeFetcher,
    decode_blob_content,
    parse_tree_listing,
    run_bounded,
)
from editor_backend.utils.error_handling import BlobFetchError
from editor_backend.utils.github_utils import GitHubAPIClient, GitHubService

from .fakes import FakeGitHubService


def many_files(count):
    return {f"src/file_{i:03d}.txt": f"content {i}\n".encode() for i in range(count)}


class TestRunBounded:

    @pytest.mark.asyncio
    async def test_never_exceeds_limit(self):
        in_flight = 0
        peak = 0

        async def worker(_item):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.001)
            in_flight -= 1

        await run_bounded(list(range(25)), worker, limit=3)
        assert peak == 3

    @pytest.mark.asyncio
    async def test_single_item(self):
        seen = []

        async def worker(item):
            seen.append(item)

        await run_bounded(["only"], worker)
        assert seen == ["only"]

    @pytest.mark.asyncio
    async def test_first_failure_cancels_the_rest(self):
        started = []

        async def worker(item):
            started.append(item)
            if item == 0:
                raise RuntimeError("boom")
            await asyncio.sleep(1)

        with pytest.raises(RuntimeError, match="boom"):
            await run_bounded(list(range(20)), worker, limit=4)
        assert started == [0, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_simultaneous_failures_are_all_retrieved(self):
        loop = asyncio.get_running_loop()
        reported = []
        loop.set_exception_handler(lambda _loop, context: reported.append(context))

        async def worker(item):
            raise RuntimeError(f"boom {item}")

        raised = None
        try:
            await run_bounded([1, 2, 3], worker, limit=3)
        except RuntimeError as e:
            raised = str(e)
        gc.collect()
        loop.set_exception_handler(None)

        assert raised in ("boom 1", "boom 2", "boom 3")
        assert reported == []

    @pytest.mark.asyncio
    async def test_rejects_zero_limit(self):
        async def worker(_item):
            return None

        with pytest.raises(ValueError):
            await run_bounded([1], worker, limit=0)


class TestTreeListing:

    def test_parse_drops_submodules_and_unsafe_paths(self):
        tree = parse_tree_listing({
            "tree": [
                {"path": "src", "type": "tree", "sha": "t"},
                {"path": "src/a.ts", "type": "blob", "sha": "b"},
                {"path": "vendor/lib", "type": "commit", "sha": "c"},
                {"path": "../escape", "type": "blob", "sha": "e"},
            ],
            "truncated": True,
        })
        assert [d.path for d in tree.directories] == ["src"]
        assert [b.path for b in tree.blobs] == ["src/a.ts"]
        assert tree.truncated

    def test_decode_blob_content(self):
        assert decode_blob_content({"content": "aGVs\nbG8=\n", "encoding": "base64"}) == b"hello"
        assert decode_blob_content({"content": "plain", "encoding": "utf-8"}) == b"plain"
        with pytest.raises(ValueError):
            decode_blob_content({"content": "x", "encoding": "rot13"})


class TestTreeFetcher:

    @pytest.mark.asyncio
    async def test_writes_every_blob(self, workspace, sample_files):
        github = FakeGitHubService(sample_files)
        fetcher = TreeFetcher(github)

        tree = await fetcher.fetch_into(workspace, "octo", "demo", "main")

        assert not tree.truncated
        assert await workspace.list_files() == sorted(sample_files)
        for path, content in sample_files.items():
            assert await workspace.read_bytes(path) == content

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [1, 7, 8, 9, 40])
    async def test_concurrency_bound(self, workspace, count):
        github = FakeGitHubService(many_files(count))
        await TreeFetcher(github).fetch_into(workspace, "octo", "demo", "main")

        assert len(github.blob_calls) == count
        assert github.max_in_flight == min(count, DEFAULT_CONCURRENCY)

    @pytest.mark.asyncio
    async def test_custom_concurrency(self, workspace):
        github = FakeGitHubService(many_files(10))
        await TreeFetcher(github, concurrency=2).fetch_into(workspace, "octo", "demo", "main")
        assert github.max_in_flight == 2

    @pytest.mark.asyncio
    async def test_fail_fast_names_failing_blob(self, workspace):
        files = many_files(30)
        failing = "src/file_003.txt"
        github = FakeGitHubService(files, failing_paths={failing})

        with pytest.raises(BlobFetchError) as exc_info:
            await TreeFetcher(github).fetch_into(workspace, "octo", "demo", "main")

        error = exc_info.value
        assert error.path == failing
        assert error.repository == "octo/demo"
        assert error.status == 404
        assert failing in error.user_message()
        assert len(github.blob_calls) < len(files)

    @pytest.mark.asyncio
    async def test_truncated_listing(self, workspace, sample_files):
        github = FakeGitHubService(sample_files, truncated=True)
        tree = await TreeFetcher(github).fetch_into(workspace, "octo", "demo", "main")
        assert tree.truncated

    @pytest.mark.asyncio
    async def test_progress_reports(self, workspace):
        progress = []
        session = ImportSession(owner_repo="octo/demo", ref="main",
                                on_progress=lambda done, total: progress.append((done, total)))
        github = FakeGitHubService(many_files(5))

        await TreeFetcher(github).fetch_into(workspace, "octo", "demo", "main", session=session)

        assert [done for done, _ in progress] == [1, 2, 3, 4, 5]
        assert all(total == 5 for _, total in progress)
        assert session.completed_count == 5

    def test_rejects_zero_concurrency(self):
        with pytest.raises(ValueError):
            TreeFetcher(FakeGitHubService({}), concurrency=0)

    @pytest.mark.asyncio
    async def test_blob_timeout_names_failing_blob(self, workspace):
        async def tree(request):
            return web.json_response({"sha": "t1", "truncated": False, "tree": [
                {"path": "fast.txt", "type": "blob", "sha": "f1"},
                {"path": "slow.txt", "type": "blob", "sha": "s1"},
            ]})

        async def blob(request):
            if request.match_info["sha"] == "s1":
                await asyncio.sleep(1)
            return web.json_response({"content": base64.b64encode(b"x").decode(), "encoding": "base64"})

        app = web.Application()
        app.router.add_get("/repos/octo/demo/git/trees/{ref}", tree)
        app.router.add_get("/repos/octo/demo/git/blobs/{sha}", blob)
        server = test_utils.TestServer(app)
        await server.start_server()
        github = GitHubService(GitHubAPIClient(base_url=str(server.make_url("/")), timeout=0.2))
        try:
            with pytest.raises(BlobFetchError) as exc_info:
                await TreeFetcher(github).fetch_into(workspace, "octo", "demo", "main")
        finally:
            await github.close()
            await server.close()

        error = exc_info.value
        assert error.path == "slow.txt"
        assert error.repository == "octo/demo"
        assert "timed out" in error.user_message()
