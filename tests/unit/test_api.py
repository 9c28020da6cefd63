"""Tests for repo_scout.api."""

import asyncio
import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from unittest.mock import AsyncMock, patch

import pytest

from repo_scout import api
from repo_scout.config.settings import ScoutSettings
from repo_scout.exceptions import (
    InvalidUrlError,
    MissingParameterError,
    PathNotFoundError,
    ResolutionFailedError,
)
from repo_scout.git.discovery import LocalRepositoryScanner
from repo_scout.git.models import ScanOptions


@pytest.fixture
def settings() -> ScoutSettings:
    return ScoutSettings(
        git_binary="/usr/local/bin/git",
        command_timeout=5,
        max_concurrency=3,
        locale="en",
        github={"token": "ghp_test", "web_url": "https://ghe.example.com/", "api_url": "https://ghe.example.com/api/v3"},
    )


@pytest.fixture
def reset_default():
    """Restore the module default instance after the test."""
    previous = api._default
    yield
    api._default = previous


class RepoHandler(BaseHTTPRequestHandler):
    """Answers every GET with a repository whose default branch is trunk."""

    def do_GET(self) -> None:
        owner, repo = self.path.strip("/").split("/")[1:3]
        body = json.dumps(
            {
                "id": 1,
                "name": repo,
                "full_name": f"{owner}/{repo}",
                "owner": {"login": owner},
                "html_url": f"https://github.com/{owner}/{repo}",
                "default_branch": "trunk",
            }
        ).encode("utf-8")
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args) -> None:
        pass


@pytest.fixture
def api_server():
    """Local REST API on a free port, yielding its base URL."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), RepoHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


# =============================================================================
# Wiring
# =============================================================================


class TestRepoScoutWiring:
    """Tests for building components from settings."""

    def test_components_share_settings(self, settings):
        """Test each component receives the configured values."""
        scout = api.RepoScout(settings)

        assert scout.git.binary == "/usr/local/bin/git"
        assert scout.git.timeout == 5.0
        assert scout.branch_resolver.git is scout.git
        assert scout.branch_resolver.web_base_url == "https://ghe.example.com"
        assert scout.scanner.git is scout.git
        assert scout.scanner.max_concurrency == 3
        assert scout.packages.max_concurrency == 3
        assert scout.packages.timeout == 5.0
        assert scout.packages.branch_resolver is scout.branch_resolver

    def test_rest_client_closes_the_chain(self, settings):
        """Test the resolver's last stage is the configured REST client."""
        scout = api.RepoScout(settings)

        assert scout.github.base_url == "https://ghe.example.com/api/v3"
        assert scout.github.token == "ghp_test"
        assert scout.github.branch_resolver is scout.branch_resolver
        assert scout.branch_resolver.api_client is scout.github
        assert scout.github.date_formatter.locale == "en"

    def test_anonymous_rest_client(self):
        """Test no token is passed when none is configured."""
        scout = api.RepoScout(ScoutSettings())

        assert scout.github.token is None


# =============================================================================
# Error stamping
# =============================================================================


class TestOperationErrors:
    """Tests for operation names on raised errors."""

    def test_normalize_error_named(self, settings):
        """Test the sync operation stamps its name."""
        with pytest.raises(InvalidUrlError) as exc_info:
            api.RepoScout(settings).normalize_git_url("ftp://")

        assert exc_info.value.operation == "normalize_git_url"
        assert str(exc_info.value).startswith("normalize_git_url failed: Invalid Git URL")
        assert exc_info.value.message.startswith("Invalid Git URL")

    def test_normalize_missing_url(self, reset_default):
        """Test an empty URL raises MissingParameterError."""
        with pytest.raises(MissingParameterError) as exc_info:
            api.normalize_git_url("")

        assert exc_info.value.parameter == "url"
        assert exc_info.value.operation == "normalize_git_url"

    @pytest.mark.asyncio
    async def test_scan_missing_root(self, settings, fake_git, tmp_path):
        """Test typed errors keep their type and gain the operation name."""
        scout = api.RepoScout(settings)
        scout.scanner = LocalRepositoryScanner(fake_git)

        with pytest.raises(PathNotFoundError) as exc_info:
            await scout.scan_local_repos(tmp_path / "missing")

        assert exc_info.value.operation == "scan_local_repos"
        assert str(exc_info.value).startswith("scan_local_repos failed: Local repository path")

    @pytest.mark.asyncio
    async def test_unexpected_error_wrapped(self, settings):
        """Test foreign exceptions become ResolutionFailedError."""
        scout = api.RepoScout(settings)
        scout.scanner.scan = AsyncMock(side_effect=RuntimeError("boom"))

        with pytest.raises(ResolutionFailedError) as exc_info:
            await scout.scan_local_repos("/src")

        assert exc_info.value.operation == "scan_local_repos"
        assert exc_info.value.cause == "boom"
        assert isinstance(exc_info.value.__cause__, RuntimeError)


# =============================================================================
# Normalization
# =============================================================================


class TestNormalizeWithConfiguredHost:
    """Tests for URLs on the configured web host."""

    def test_dotted_owner_on_web_host(self, settings):
        """Test the configured host is never unwrapped as a proxy."""
        identity = api.RepoScout(settings).normalize_git_url("https://ghe.example.com/my.team/tool/tree/main")

        assert identity.owner == "my.team"
        assert identity.repo == "tool"
        assert identity.html_url == "https://ghe.example.com/my.team/tool"


# =============================================================================
# Module-level functions
# =============================================================================


class TestModuleFunctions:
    """Tests for the default-instance functions."""

    def test_normalize(self, reset_default):
        """Test the proxy-wrapped URL is normalized."""
        identity = api.normalize_git_url("https://ghproxy.com/github.com/user/repo.git")

        assert identity.owner == "user"
        assert identity.repo == "repo"
        assert identity.html_url == "https://github.com/user/repo"

    def test_configure_replaces_default(self, settings, reset_default):
        """Test configure installs the instance get_default returns."""
        scout = api.configure(settings)

        assert api.get_default() is scout
        assert scout.settings is settings

    def test_get_default_builds_lazily(self, reset_default, monkeypatch):
        """Test a default instance is built from the environment on first use."""
        monkeypatch.setattr(api, "_default", None)

        scout = api.get_default()

        assert isinstance(scout, api.RepoScout)
        assert api.get_default() is scout

    @pytest.mark.asyncio
    async def test_scan_delegates_to_default(self, settings, reset_default):
        """Test module functions call the configured instance."""
        scout = api.configure(settings)
        options = ScanOptions(loop=True, max_depth=1)

        with patch.object(scout.scanner, "scan", new_callable=AsyncMock) as scan:
            scan.return_value = "result"
            assert await api.scan_local_repos("/src", options) == "result"

        scan.assert_awaited_once_with("/src", options)

    @pytest.mark.asyncio
    async def test_repo_branch_delegates_to_rest_client(self, settings, reset_default):
        """Test the combined lookup goes through the REST client's resolver."""
        scout = api.configure(settings)

        with patch.object(scout.branch_resolver, "resolve_repo_default_branch", new_callable=AsyncMock) as resolve:
            resolve.return_value = "develop"
            assert await api.resolve_repo_default_branch("user", "repo") == "develop"

        resolve.assert_awaited_once_with("user", "repo")


# =============================================================================
# Event loops
# =============================================================================


class TestRepeatedEventLoops:
    """Tests for module functions called from successive event loops."""

    def test_rest_fallback_in_two_loops(self, api_server, reset_default, monkeypatch):
        """Test the default instance keeps working after its first loop closed."""
        for name in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy"):
            monkeypatch.delenv(name, raising=False)
        api.configure(ScoutSettings(git_binary="definitely-not-git", github={"api_url": api_server}))

        first = asyncio.run(api.resolve_repo_default_branch("u", "r"))
        second = asyncio.run(api.resolve_repo_default_branch("u", "r"))

        assert first == second == "trunk"
