import pytest

from editor_backend.services.virtual_filesystem import VirtualFileSystem, WorkspaceFiles

SAMPLE_FILES = {
    "README.md": b"# demo\n",
    "src/a.ts": b"export const a = 1;\n",
    "src/lib/b.ts": b"export const b = 2;\n",
    "assets/logo.bin": bytes(range(256)),
}


@pytest.fixture
def vfs(tmp_path):
    """A fresh virtual filesystem per test."""
    return VirtualFileSystem(str(tmp_path / "vfs"))


@pytest.fixture
def workspace(vfs):
    return WorkspaceFiles(vfs, "/workspaces/octo/demo")


@pytest.fixture
def sample_files():
    return dict(SAMPLE_FILES)
