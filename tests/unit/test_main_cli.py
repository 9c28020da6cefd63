"""Tests for the repo-scout click CLI."""

import json
from unittest.mock import AsyncMock, patch

import pytest
import structlog
from click.testing import CliRunner

from repo_scout.exceptions import BranchResolutionError, PathNotFoundError
from repo_scout.git.models import (
    LocalRepositoryList,
    LocalRepositoryRecord,
    PackageFilterOptions,
    PackageRepositoryList,
    PackageRepositoryRecord,
    ScanOptions,
)
from repo_scout.main import cli


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep log lines out of the captured CLI output."""
    structlog.configure(logger_factory=structlog.ReturnLoggerFactory(), cache_logger_on_first_use=False)
    with patch("repo_scout.main.configure_logging"):
        yield
    structlog.reset_defaults()


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def scout():
    """Patch RepoScout so commands run against AsyncMock operations."""
    with patch("repo_scout.main.RepoScout") as mock_cls:
        instance = mock_cls.return_value
        for name in (
            "scan_local_repos",
            "local_default_branch",
            "remote_default_branch",
            "resolve_repo_default_branch",
            "resolve_package",
            "resolve_project_packages",
        ):
            setattr(instance, name, AsyncMock())
        yield instance


def sample_record(path: str = "/src/tool") -> LocalRepositoryRecord:
    return LocalRepositoryRecord(
        owner="user",
        repo="tool",
        html_url="https://github.com/user/tool",
        name="tool",
        path=path,
        url="https://ghproxy.com/github.com/user/tool.git",
        default_branch="main",
    )


class TestNormalize:
    """Tests for the normalize command."""

    def test_prints_identity(self, runner):
        """Test the identity is printed as JSON."""
        result = runner.invoke(cli, ["normalize", "https://ghproxy.com/https://github.com/user/repo.git"])

        assert result.exit_code == 0
        assert json.loads(result.output) == {
            "owner": "user",
            "repo": "repo",
            "html_url": "https://github.com/user/repo",
        }

    def test_invalid_url(self, runner):
        """Test an unrecognized URL exits 1 with the operation named."""
        result = runner.invoke(cli, ["normalize", "not a url"])

        assert result.exit_code == 1
        assert "Error: normalize_git_url failed: Invalid Git URL" in result.output


class TestScan:
    """Tests for the scan command."""

    def test_scan_options(self, runner, scout):
        """Test flags become ScanOptions and the list is printed."""
        scout.scan_local_repos.return_value = LocalRepositoryList(total=1, items=[sample_record()])

        result = runner.invoke(cli, ["scan", "/src", "--loop", "--max-depth", "2", "--exclude", "vendor"])

        assert result.exit_code == 0
        output = json.loads(result.output)
        assert output["total"] == 1
        assert output["items"][0]["html_url"] == "https://github.com/user/tool"
        scout.scan_local_repos.assert_awaited_once_with(
            "/src",
            ScanOptions(loop=True, max_depth=2, exclude_dirs=frozenset({"vendor"})),
        )

    def test_scan_defaults_from_settings(self, runner, scout):
        """Test depth and exclusions default to the configured scan settings."""
        scout.scan_local_repos.return_value = LocalRepositoryList(total=0, items=[])

        result = runner.invoke(cli, ["scan", "/src"])

        assert result.exit_code == 0
        options = scout.scan_local_repos.call_args.args[1]
        assert options.loop is False
        assert options.max_depth == 5
        assert options.exclude_dirs == frozenset({"node_modules", ".git"})

    def test_scan_error(self, runner, scout):
        """Test typed errors exit 1."""
        scout.scan_local_repos.side_effect = PathNotFoundError("/missing")

        result = runner.invoke(cli, ["scan", "/missing"])

        assert result.exit_code == 1
        assert "Local repository path /missing does not exist" in result.output

    def test_negative_depth_rejected(self, runner, scout):
        """Test click rejects a negative depth."""
        result = runner.invoke(cli, ["scan", "/src", "--max-depth", "-1"])

        assert result.exit_code == 2
        scout.scan_local_repos.assert_not_called()

    def test_keyboard_interrupt(self, runner, scout):
        """Test Ctrl-C exits 130."""
        scout.scan_local_repos.side_effect = KeyboardInterrupt()

        result = runner.invoke(cli, ["scan", "/src"])

        assert result.exit_code == 130


class TestBranch:
    """Tests for the branch command group."""

    def test_local(self, runner, scout):
        """Test branch local prints the HEAD branch."""
        scout.local_default_branch.return_value = "feature/login"

        result = runner.invoke(cli, ["branch", "local", "/src/tool"])

        assert result.exit_code == 0
        assert json.loads(result.output) == "feature/login"
        scout.local_default_branch.assert_awaited_once_with("/src/tool")

    def test_remote(self, runner, scout):
        """Test branch remote passes the URL through."""
        scout.remote_default_branch.return_value = "main"

        result = runner.invoke(cli, ["branch", "remote", "https://ghproxy.com/github.com/user/repo"])

        assert result.exit_code == 0
        scout.remote_default_branch.assert_awaited_once_with("https://ghproxy.com/github.com/user/repo")

    def test_repo(self, runner, scout):
        """Test branch repo uses the combined lookup."""
        scout.resolve_repo_default_branch.return_value = "develop"

        result = runner.invoke(cli, ["branch", "repo", "user", "repo"])

        assert result.exit_code == 0
        assert json.loads(result.output) == "develop"

    def test_repo_exhausted(self, runner, scout):
        """Test exhaustion is reported as an error."""
        scout.resolve_repo_default_branch.side_effect = BranchResolutionError("Unable to resolve default branch")

        result = runner.invoke(cli, ["branch", "repo", "user", "gone"])

        assert result.exit_code == 1
        assert "Unable to resolve default branch" in result.output


class TestPackages:
    """Tests for the package and packages commands."""

    def test_package(self, runner, scout):
        """Test package prints the record."""
        scout.resolve_package.return_value = PackageRepositoryRecord(
            name="chalk",
            path="/app/node_modules/chalk",
            html_url="https://github.com/chalk/chalk",
            owner="chalk",
            repo="chalk",
            default_branch="main",
        )

        result = runner.invoke(cli, ["package", "chalk", "--project", "/app"])

        assert result.exit_code == 0
        assert json.loads(result.output)["html_url"] == "https://github.com/chalk/chalk"
        scout.resolve_package.assert_awaited_once_with("chalk", "/app")

    def test_package_not_found(self, runner, scout):
        """Test an unresolvable package prints null."""
        scout.resolve_package.return_value = None

        result = runner.invoke(cli, ["package", "left-pad"])

        assert result.exit_code == 0
        assert json.loads(result.output) is None

    def test_packages_filters(self, runner, scout):
        """Test exclusions and prefix become PackageFilterOptions."""
        scout.resolve_project_packages.return_value = PackageRepositoryList(total=0, items=[])

        result = runner.invoke(
            cli, ["packages", "/app", "--exclude", "left-pad", "--exclude", "lodash", "--prefix", "@scope/"]
        )

        assert result.exit_code == 0
        assert json.loads(result.output) == {"total": 0, "items": []}
        scout.resolve_project_packages.assert_awaited_once_with(
            "/app",
            PackageFilterOptions(exclude=frozenset({"left-pad", "lodash"}), prefix="@scope/"),
        )


class TestGlobalOptions:
    """Tests for --config handling."""

    def test_missing_config(self, runner, tmp_path):
        """Test a missing config file exits 1."""
        result = runner.invoke(cli, ["--config", str(tmp_path / "absent.yaml"), "normalize", "user/repo"])

        assert result.exit_code == 1
        assert "Configuration file not found" in result.output

    def test_config_file_used(self, runner, scout, tmp_path):
        """Test scan defaults come from the config file."""
        config = tmp_path / "scout.yaml"
        config.write_text("scan:\n  max_depth: 1\n  exclude_dirs: [dist]\n")
        scout.scan_local_repos.return_value = LocalRepositoryList(total=0, items=[])

        result = runner.invoke(cli, ["--config", str(config), "scan", "/src", "--loop"])

        assert result.exit_code == 0
        options = scout.scan_local_repos.call_args.args[1]
        assert options.max_depth == 1
        assert options.exclude_dirs == frozenset({"dist"})
