"""Public operations of repo-scout.

:class:`RepoScout` wires the git client, branch resolver, scanner, package
resolver and REST client together from one :class:`ScoutSettings`. The
module-level functions delegate to a lazily built default instance; call
:func:`configure` first to use settings other than the environment's.

Every operation is wrapped with :func:`operation_errors`, so errors reaching
callers carry the operation name.

Example:
    >>> from repo_scout import api
    >>> api.normalize_git_url("https://ghproxy.com/github.com/user/repo.git").html_url
    'https://github.com/user/repo'
    >>> result = await api.scan_local_repos("~/src", ScanOptions(loop=True))
"""

from pathlib import Path

import structlog

from repo_scout.config.settings import ScoutSettings
from repo_scout.exceptions import operation_errors
from repo_scout.git import parser
from repo_scout.git.branch import BranchResolver
from repo_scout.git.client import GitClient
from repo_scout.git.discovery import LocalRepositoryScanner
from repo_scout.git.models import (
    LocalRepositoryList,
    LocalRepositoryRecord,
    PackageFilterOptions,
    PackageRepositoryList,
    PackageRepositoryRecord,
    RepositoryIdentity,
    ScanOptions,
)
from repo_scout.packages.npm import NpmPackageResolver
from repo_scout.providers.github_rest import GitHubRestClient
from repo_scout.utils.date_format import DateFormatter

log = structlog.get_logger(__name__)


class RepoScout:
    """All repo-scout operations bound to one set of settings.

    Args:
        settings: Settings to build components from; read from the
            environment when omitted
    """

    def __init__(self, settings: ScoutSettings | None = None) -> None:
        self.settings = settings or ScoutSettings()

        token = self.settings.github.token
        self.git = GitClient(self.settings.git_binary, timeout=self.settings.command_timeout)
        self.branch_resolver = BranchResolver(self.git, web_base_url=self.settings.github.web_url)
        self.github = GitHubRestClient(
            base_url=self.settings.github.api_url,
            token=token.get_secret_value() if token else None,
            branch_resolver=self.branch_resolver,
            date_formatter=DateFormatter(locale=self.settings.locale),
        )
        self.scanner = LocalRepositoryScanner(
            self.git,
            self.branch_resolver,
            max_concurrency=self.settings.max_concurrency,
        )
        self.packages = NpmPackageResolver(
            self.branch_resolver,
            npm_binary=self.settings.npm_binary,
            timeout=self.settings.command_timeout,
            max_concurrency=self.settings.max_concurrency,
        )

    @operation_errors("normalize_git_url")
    def normalize_git_url(self, url: str) -> RepositoryIdentity:
        """Normalize a (possibly proxy-wrapped) remote URL.

        The configured web host counts as a forge, so its URLs are never
        mistaken for proxy-wrapped ones.
        """
        return parser.normalize_git_url(url, self.branch_resolver.forge_hosts)

    @operation_errors("local_repo_info")
    async def local_repo_info(self, path: Path | str) -> LocalRepositoryRecord | None:
        """Describe one working copy, or None when it has no .git or remotes."""
        return await self.scanner.local_repo_info(path)

    @operation_errors("scan_local_repos")
    async def scan_local_repos(self, root: Path | str, options: ScanOptions | None = None) -> LocalRepositoryList:
        """Find every working copy under root."""
        return await self.scanner.scan(root, options)

    @operation_errors("local_default_branch")
    async def local_default_branch(self, path: Path | str) -> str:
        """Get the branch a working copy's HEAD points to."""
        return await self.branch_resolver.local_default_branch(path)

    @operation_errors("remote_default_branch")
    async def remote_default_branch(self, url: str) -> str:
        """Get a remote's default branch over the Git protocol."""
        return await self.branch_resolver.remote_default_branch(url)

    @operation_errors("resolve_repo_default_branch")
    async def resolve_repo_default_branch(self, owner: str, repo: str) -> str:
        """Get owner/repo's default branch, falling back to the REST API."""
        return await self.github.get_repo_default_branch(owner, repo)

    @operation_errors("resolve_package")
    async def resolve_package(
        self,
        name: str,
        project_dir: Path | str | None = None,
    ) -> PackageRepositoryRecord | None:
        """Resolve one npm package to its upstream repository."""
        return await self.packages.resolve_package(name, project_dir)

    @operation_errors("resolve_project_packages")
    async def resolve_project_packages(
        self,
        project_dir: Path | str,
        options: PackageFilterOptions | None = None,
    ) -> PackageRepositoryList:
        """Resolve every production dependency of a project."""
        return await self.packages.resolve_project_packages(project_dir, options)


_default: RepoScout | None = None


def configure(settings: ScoutSettings | None = None) -> RepoScout:
    """Replace the default instance used by the module-level functions."""
    global _default
    _default = RepoScout(settings)
    log.debug("repo_scout_configured")
    return _default


def get_default() -> RepoScout:
    """Get the default instance, building it from the environment if needed."""
    if _default is None:
        return configure()
    return _default


def normalize_git_url(url: str) -> RepositoryIdentity:
    """Normalize a (possibly proxy-wrapped) remote URL.

    Raises:
        MissingParameterError: If url is empty
        InvalidUrlError: If the URL cannot be identified
    """
    return get_default().normalize_git_url(url)


async def local_repo_info(path: Path | str) -> LocalRepositoryRecord | None:
    """Describe one working copy; see :meth:`LocalRepositoryScanner.local_repo_info`."""
    return await get_default().local_repo_info(path)


async def scan_local_repos(root: Path | str, options: ScanOptions | None = None) -> LocalRepositoryList:
    """Find working copies under root; see :meth:`LocalRepositoryScanner.scan`."""
    return await get_default().scan_local_repos(root, options)


async def local_default_branch(path: Path | str) -> str:
    """Get a working copy's HEAD branch; see :meth:`BranchResolver.local_default_branch`."""
    return await get_default().local_default_branch(path)


async def remote_default_branch(url: str) -> str:
    """Get a remote's default branch; see :meth:`BranchResolver.remote_default_branch`."""
    return await get_default().remote_default_branch(url)


async def resolve_repo_default_branch(owner: str, repo: str) -> str:
    """Get owner/repo's default branch; see :meth:`BranchResolver.resolve_repo_default_branch`."""
    return await get_default().resolve_repo_default_branch(owner, repo)


async def resolve_package(name: str, project_dir: Path | str | None = None) -> PackageRepositoryRecord | None:
    """Resolve one npm package; see :meth:`NpmPackageResolver.resolve_package`."""
    return await get_default().resolve_package(name, project_dir)


async def resolve_project_packages(
    project_dir: Path | str,
    options: PackageFilterOptions | None = None,
) -> PackageRepositoryList:
    """Resolve a project's dependencies; see :meth:`NpmPackageResolver.resolve_project_packages`."""
    return await get_default().resolve_project_packages(project_dir, options)
