"""Upstream repository lookup for installed npm packages.

A package's repository URL is read from the registry first
(``npm view <name> --json``) and, when the registry cannot answer, from the
installed manifest under ``node_modules``. Missing information is a normal
outcome and yields ``None`` rather than an error; only the preconditions of
:meth:`NpmPackageResolver.resolve_project_packages` raise.

Example:
    >>> resolver = NpmPackageResolver(BranchResolver(GitClient()))
    >>> record = await resolver.resolve_package("chalk", project_dir="/app")
    >>> record.html_url, record.default_branch
    ('https://github.com/chalk/chalk', 'main')
"""

import asyncio
import json
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from repo_scout.exceptions import MissingParameterError, PathNotFoundError, RepoScoutError
from repo_scout.git.branch import BranchResolver
from repo_scout.git.models import PackageFilterOptions, PackageRepositoryList, PackageRepositoryRecord
from repo_scout.git.parser import GitUrlParser
from repo_scout.utils.async_subprocess import run_command

log = structlog.get_logger(__name__)


def repository_url(repository: Any) -> str | None:
    """Extract a clone URL from a manifest ``repository`` field.

    Accepts the string form and the ``{"type": ..., "url": ...}`` form, and
    strips npm's ``git+`` prefix.

    Example:
        >>> repository_url({"type": "git", "url": "git+https://github.com/chalk/chalk.git"})
        'https://github.com/chalk/chalk.git'
    """
    if isinstance(repository, dict):
        repository = repository.get("url")
    if not isinstance(repository, str) or not repository.strip():
        return None
    return repository.strip().removeprefix("git+")


def _read_json(path: Path) -> Any:
    """Read a UTF-8 JSON file, returning None when absent or unparseable."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        log.debug("manifest_unreadable", path=path.as_posix(), error=str(e))
        return None


class NpmPackageResolver:
    """Maps npm packages to their upstream Git repositories.

    Args:
        branch_resolver: Resolver used for each package's remote default branch
        npm_binary: npm executable name or path
        timeout: Seconds before an npm subprocess is killed; None waits forever
        max_concurrency: Maximum number of packages resolved at once
    """

    def __init__(
        self,
        branch_resolver: BranchResolver | None = None,
        npm_binary: str = "npm",
        timeout: float | None = None,
        max_concurrency: int = 16,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.branch_resolver = branch_resolver or BranchResolver()
        self.npm_binary = npm_binary
        self.timeout = timeout
        self.max_concurrency = max_concurrency

    async def _npm_json(self, *args: str, cwd: Path) -> Any:
        """Run npm and parse its stdout as JSON; None when npm gives nothing usable."""
        try:
            stdout, stderr, returncode = await run_command(
                self.npm_binary,
                *args,
                cwd=cwd,
                check=False,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            log.debug("npm_not_found", binary=self.npm_binary)
            return None
        except (OSError, TimeoutError) as e:
            log.debug("npm_command_failed", command=args[0], error=str(e) or type(e).__name__)
            return None

        if not stdout.strip():
            log.debug("npm_empty_output", command=args[0], returncode=returncode, stderr=stderr.strip())
            return None

        try:
            return json.loads(stdout)
        except json.JSONDecodeError:
            log.debug("npm_invalid_json", command=args[0], returncode=returncode)
            return None

    async def _build_record(
        self,
        requested: str,
        manifest: dict[str, Any],
        package_path: Path,
    ) -> PackageRepositoryRecord | None:
        url = repository_url(manifest.get("repository"))
        if not url:
            return None

        parser = GitUrlParser(url, self.branch_resolver.forge_hosts)
        # Shorthands such as "owner/repo" are not something git can query
        query_url = parser.https_url if parser.url_type == "shorthand" else url
        branch = await self.branch_resolver.remote_default_branch(query_url)

        name = manifest.get("name")
        return PackageRepositoryRecord(
            name=name if isinstance(name, str) and name else requested,
            path=package_path.as_posix(),
            html_url=parser.html_url,
            owner=parser.owner,
            repo=parser.repo,
            default_branch=branch,
        )

    async def _from_registry(self, name: str, project_dir: Path, package_path: Path) -> PackageRepositoryRecord | None:
        data = await self._npm_json("view", name, "--json", cwd=project_dir)
        # Version ranges make npm return one document per matching version
        if isinstance(data, list):
            data = data[-1] if data else None
        if not isinstance(data, dict):
            return None

        try:
            return await self._build_record(name, data, package_path)
        except (RepoScoutError, ValidationError) as e:
            log.debug("registry_repository_unresolved", package=name, error=str(e))
            return None

    async def _from_manifest(self, name: str, package_path: Path) -> PackageRepositoryRecord | None:
        manifest = await asyncio.to_thread(_read_json, package_path / "package.json")
        if not isinstance(manifest, dict) or not manifest:
            return None

        try:
            return await self._build_record(name, manifest, package_path)
        except (RepoScoutError, ValidationError) as e:
            log.debug("manifest_repository_unresolved", package=name, error=str(e))
            return None

    async def resolve_package(
        self,
        name: str,
        project_dir: Path | str | None = None,
    ) -> PackageRepositoryRecord | None:
        """Resolve one package to its upstream repository.

        Args:
            name: Package name, scoped names included
            project_dir: Project whose node_modules holds the package; defaults
                to the current working directory

        Returns:
            The record, or None when neither the registry nor the installed
            manifest names a resolvable repository.
        """
        if not name:
            return None

        project = Path(project_dir).absolute() if project_dir else Path.cwd()
        package_path = project / "node_modules" / name

        record = await self._from_registry(name, project, package_path)
        if record is None:
            log.debug("registry_fallback_to_manifest", package=name)
            record = await self._from_manifest(name, package_path)

        if record is None:
            log.debug("package_repository_not_found", package=name)
        return record

    async def _production_dependencies(self, project: Path) -> list[str]:
        listing = await self._npm_json("list", "--prod", "--depth=0", "--json", cwd=project)
        if isinstance(listing, dict):
            dependencies = listing.get("dependencies")
            return list(dependencies) if isinstance(dependencies, dict) else []

        log.debug("npm_list_fallback_to_manifest", project=project.as_posix())
        manifest = await asyncio.to_thread(_read_json, project / "package.json")
        if not isinstance(manifest, dict):
            return []
        dependencies = manifest.get("dependencies")
        return list(dependencies) if isinstance(dependencies, dict) else []

    async def resolve_project_packages(
        self,
        project_dir: Path | str,
        options: PackageFilterOptions | None = None,
    ) -> PackageRepositoryList:
        """Resolve every production dependency of a project.

        Args:
            project_dir: Project root holding package.json and node_modules
            options: Names to exclude and an optional name prefix filter

        Returns:
            PackageRepositoryList of the packages that resolved, unordered

        Raises:
            MissingParameterError: If project_dir is empty
            PathNotFoundError: If project_dir does not exist
        """
        if not project_dir:
            raise MissingParameterError("project_dir")

        options = options or PackageFilterOptions()
        project = Path(project_dir).expanduser().absolute()
        if not await asyncio.to_thread(project.exists):
            raise PathNotFoundError(project.as_posix())

        if not await asyncio.to_thread((project / "node_modules").exists):
            log.info("node_modules_missing", project=project.as_posix())
            return PackageRepositoryList(total=0, items=[])

        names = [
            name
            for name in await self._production_dependencies(project)
            if name not in options.exclude and (not options.prefix or name.startswith(options.prefix))
        ]
        log.info("resolving_packages", project=project.as_posix(), count=len(names))

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def resolve(name: str) -> PackageRepositoryRecord | None:
            async with semaphore:
                try:
                    return await self.resolve_package(name, project)
                except (RepoScoutError, OSError) as e:
                    log.debug("package_resolution_failed", package=name, error=str(e))
                    return None

        results = await asyncio.gather(*(resolve(name) for name in names))
        items = [record for record in results if record is not None]

        log.info("packages_resolved", project=project.as_posix(), total=len(items), requested=len(names))
        return PackageRepositoryList(total=len(items), items=items)
