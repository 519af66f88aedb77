"""
End-to-end tests for the HTTP API with an in-memory GitHub.
"""

import pytest
from fastapi.testclient import TestClient

from editor_backend.app import create_app, status_for_error
from editor_backend.config.settings import Settings
from editor_backend.core.workspace_manager import WorkspaceManager
from editor_backend.utils.error_handling import AcquisitionError, FileNotFoundInWorkspace, VersionControlError

from .fakes import FakeGitHubService, requires_git

API = "/api/v1"


@pytest.fixture
def settings(tmp_path):
    return Settings(vfs_root=str(tmp_path / "vfs"), log_format="console")


@pytest.fixture
def github(sample_files):
    return FakeGitHubService(sample_files)


@pytest.fixture
def client(settings, github):
    manager = WorkspaceManager(settings, github=github)
    with TestClient(create_app(settings, manager)) as test_client:
        yield test_client


class TestFiles:

    def test_health(self, client):
        response = client.get(f"{API}/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_write_read_and_tree(self, client):
        response = client.put(f"{API}/local/scratch/files", json={"path": "src/a.ts", "content": "let a = 1;"})
        assert response.status_code == 200

        response = client.get(f"{API}/local/scratch/files", params={"path": "src/a.ts"})
        assert response.json() == {"path": "src/a.ts", "content": "let a = 1;"}

        tree = client.get(f"{API}/local/scratch/tree").json()
        assert tree["work_dir"] == "/local/scratch"
        assert tree["tree"][0]["name"] == "src"
        assert tree["tree"][0]["children"][0]["path"] == "src/a.ts"

    def test_create_folder(self, client):
        response = client.post(f"{API}/workspaces/octo/demo/folders", json={"path": "docs/guides"})
        assert response.status_code == 200
        tree = client.get(f"{API}/workspaces/octo/demo/tree").json()["tree"]
        assert tree[0]["children"][0]["path"] == "docs/guides"

    def test_search(self, client):
        client.put(f"{API}/local/scratch/files", json={"path": "a.txt", "content": "Hello\nworld\n"})
        client.put(f"{API}/local/scratch/files", json={"path": "b.txt", "content": "WORLD"})

        response = client.get(f"{API}/local/scratch/search", params={"q": "world"})

        assert response.json()["results"] == [
            {"file": "a.txt", "line": 2, "content": "world"},
            {"file": "b.txt", "line": 1, "content": "WORLD"},
        ]

    def test_missing_file_is_404(self, client):
        response = client.get(f"{API}/local/scratch/files", params={"path": "nope.txt"})
        assert response.status_code == 404
        assert response.json()["category"] == "filesystem"

    def test_traversal_is_400(self, client):
        response = client.get(f"{API}/local/scratch/files", params={"path": "../secret"})
        assert response.status_code == 400
        assert response.json()["category"] == "validation"

    def test_git_metadata_is_off_limits(self, client):
        response = client.put(f"{API}/local/scratch/files", json={"path": ".git/hooks/pre-commit", "content": "x"})
        assert response.status_code == 400
        assert response.json()["category"] == "validation"

        response = client.post(f"{API}/local/scratch/folders", json={"path": ".git/hooks"})
        assert response.status_code == 400

        response = client.get(f"{API}/local/scratch/files", params={"path": ".git/config"})
        assert response.status_code == 400

    def test_invalid_repository_name_is_400(self, client):
        response = client.get(f"{API}/workspaces/octo/bad!name/tree")
        assert response.status_code == 400


class TestImport:

    def test_blob_failure_is_reported(self, settings, sample_files):
        github = FakeGitHubService(sample_files, failing_paths={"src/a.ts"})
        manager = WorkspaceManager(settings, github=github)
        with TestClient(create_app(settings, manager)) as client:
            response = client.post(f"{API}/workspaces/import",
                                   json={"owner": "octo", "repo": "demo", "ref": "main", "strategy": "tree"})

        assert response.status_code == 404
        body = response.json()
        assert body["category"] == "acquisition"
        assert body["message"].startswith("Failed to import octo/demo:")
        assert body["details"]["path"] == "src/a.ts"

    def test_unknown_strategy_is_rejected(self, client):
        response = client.post(f"{API}/workspaces/import",
                               json={"owner": "octo", "repo": "demo", "strategy": "svn"})
        assert response.status_code == 422

    def test_disabled_feature_is_403(self, settings, github):
        settings._yaml_config = {"features": {"local_repositories": False}}
        manager = WorkspaceManager(settings, github=github)
        with TestClient(create_app(settings, manager)) as client:
            response = client.post(f"{API}/local", json={"name": "scratch"})
        assert response.status_code == 403


@requires_git
class TestImportAndGit:

    def test_import_then_commit(self, client, sample_files):
        response = client.post(
            f"{API}/workspaces/import",
            json={"owner": "octo", "repo": "demo", "strategy": "zipball"},
            headers={"Authorization": "Bearer tok123"},
        )
        assert response.status_code == 200
        result = response.json()
        assert result["work_dir"] == "/workspaces/octo/demo"
        assert result["ref"] == "main"
        assert result["outcome"] == "success"
        assert result["files_written"] == len(sample_files)

        status = client.get(f"{API}/workspaces/octo/demo/git/status").json()
        assert status["branch"] == "main"
        assert "README.md" in status["untracked"]

        response = client.post(f"{API}/workspaces/octo/demo/git/commit",
                               json={"message": "Import snapshot", "stage_all": True})
        assert response.status_code == 200
        oid = response.json()["oid"]

        log = client.get(f"{API}/workspaces/octo/demo/git/log").json()["commits"]
        assert [c["oid"] for c in log] == [oid]

    def test_local_repository_branches(self, client):
        assert client.post(f"{API}/local", json={"name": "scratch"}).status_code == 200
        client.put(f"{API}/local/scratch/files", json={"path": "a.txt", "content": "a"})
        assert client.post(f"{API}/local/scratch/git/add", json={"path": "a.txt"}).status_code == 200
        client.post(f"{API}/local/scratch/git/commit", json={"message": "first"})

        response = client.post(f"{API}/local/scratch/git/branches", json={"name": "feature"})
        assert response.json() == {"current": "feature", "branches": ["feature", "main"]}

        response = client.post(f"{API}/local/scratch/git/checkout", json={"name": "main"})
        assert response.json()["current"] == "main"

    def test_push_failure_is_409(self, client):
        client.post(f"{API}/local", json={"name": "scratch"})
        client.put(f"{API}/local/scratch/files", json={"path": "a.txt", "content": "a"})
        client.post(f"{API}/local/scratch/git/commit", json={"message": "first", "stage_all": True})

        response = client.post(f"{API}/local/scratch/git/push", headers={"Authorization": "Bearer tok123"})

        assert response.status_code == 409
        assert "tok123" not in response.text


class TestStatusMapping:

    def test_upstream_statuses_pass_through(self):
        assert status_for_error(AcquisitionError("gone", status=404)) == 404
        assert status_for_error(AcquisitionError("boom", status=500)) == 502

    def test_other_categories(self):
        assert status_for_error(FileNotFoundInWorkspace("/x")) == 404
        assert status_for_error(VersionControlError("no", "push")) == 409
