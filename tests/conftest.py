"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from repo_scout.exceptions import GitOperationError
from repo_scout.git.client import GitClient
from repo_scout.git.models import GitRemote


class FakeGitClient(GitClient):
    """GitClient double answering from dictionaries instead of a git binary.

    Args:
        remotes: Absolute posix path -> push URL of its first remote
        heads: Absolute posix path -> HEAD branch ("main" when absent)
        ls_remote: Remote URL -> ``ls-remote --symref`` output
        installed: Whether ``git --version`` succeeds
        failing: Paths whose ``git remote -v`` fails
    """

    def __init__(
        self,
        remotes: dict[str, str] | None = None,
        heads: dict[str, str] | None = None,
        ls_remote: dict[str, str] | None = None,
        installed: bool = True,
        failing: set[str] | None = None,
    ) -> None:
        super().__init__()
        self.remotes = remotes or {}
        self.heads = heads or {}
        self.ls_remote = ls_remote or {}
        self.installed = installed
        self.failing = failing or set()
        self.inspected: list[str] = []
        self.queried: list[str] = []

    async def version(self) -> str | None:
        return "git version 2.43.0" if self.installed else None

    async def list_remotes(self, path: Path | str) -> list[GitRemote]:
        key = Path(path).as_posix()
        self.inspected.append(key)
        if key in self.failing:
            raise GitOperationError(f"git remote failed: fatal: not a git repository: {key}")
        url = self.remotes.get(key)
        return [GitRemote(name="origin", url=url)] if url else []

    async def head_branch(self, path: Path | str) -> str:
        return self.heads.get(Path(path).as_posix(), "main")

    async def ls_remote_head(self, url: str) -> str:
        self.queried.append(url)
        if url not in self.ls_remote:
            raise GitOperationError(f"git ls-remote failed: repository '{url}' not found")
        return self.ls_remote[url]


def _make_repo(path: Path) -> Path:
    """Create a directory with a .git marker."""
    (path / ".git").mkdir(parents=True)
    return path


def _symref_output(branch: str) -> str:
    """Build ``git ls-remote --symref <url> HEAD`` output for a branch."""
    return f"ref: refs/heads/{branch}\tHEAD\n6f1ed002ab5595859014ebf0951522d9c3b1e2a0\tHEAD\n"


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """Resolved temporary directory (scans resolve their root)."""
    return tmp_path.resolve()


@pytest.fixture
def fake_git() -> FakeGitClient:
    """Git double with no repositories configured."""
    return FakeGitClient()


@pytest.fixture
def make_repo():
    """Factory creating a directory with a .git marker."""
    return _make_repo


@pytest.fixture
def symref():
    """Factory building ls-remote --symref output for a branch."""
    return _symref_output


@pytest.fixture
def git_factory():
    """The FakeGitClient class, for tests that configure their own double."""
    return FakeGitClient
