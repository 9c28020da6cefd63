"""Recursive discovery of Git working copies under a directory.

A directory counts as a repository when it holds a ``.git`` marker and git
lists at least one remote for it. Discovery keeps descending into
repositories, so a repo holding nested repos yields one record per working
copy. Sibling subtrees are scanned concurrently; each directory check that spawns git
is gated by a semaphore so fan-out stays bounded on wide trees.

Example:
    >>> scanner = LocalRepositoryScanner(GitClient())
    >>> result = await scanner.scan("~/src", ScanOptions(loop=True, max_depth=2))
    >>> result.total
    3
"""

import asyncio
import os
from pathlib import Path

import structlog
from pydantic import ValidationError

from repo_scout.exceptions import MissingParameterError, PathNotFoundError, RepoScoutError
from repo_scout.git.branch import BranchResolver
from repo_scout.git.client import GitClient
from repo_scout.git.models import LocalRepositoryList, LocalRepositoryRecord, ScanOptions
from repo_scout.git.parser import normalize_git_url

log = structlog.get_logger(__name__)


def _list_subdirectories(path: Path, exclude: frozenset[str]) -> list[Path]:
    """List immediate subdirectories, skipping symlinks and excluded names."""
    with os.scandir(path) as entries:
        return [
            path / entry.name
            for entry in entries
            if entry.is_dir(follow_symlinks=False) and entry.name not in exclude
        ]


def _has_git_marker(path: Path) -> bool:
    return path.is_dir() and (path / ".git").exists()


class LocalRepositoryScanner:
    """Finds Git working copies on the local filesystem.

    Args:
        git: Git client used for remote and HEAD queries
        branch_resolver: Resolver reading local HEADs; built from git if omitted
        max_concurrency: Maximum number of directories inspected at once
    """

    def __init__(
        self,
        git: GitClient | None = None,
        branch_resolver: BranchResolver | None = None,
        max_concurrency: int = 16,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.git = git or GitClient()
        self.branch_resolver = branch_resolver or BranchResolver(self.git)
        self.max_concurrency = max_concurrency

    async def _inspect(self, path: Path) -> LocalRepositoryRecord | None:
        """Build a record for path, or None when it is not a repo with remotes."""
        if not await asyncio.to_thread(_has_git_marker, path):
            return None

        remotes = await self.git.list_remotes(path)
        if not remotes:
            log.debug("repository_without_remotes", path=path.as_posix())
            return None

        url = remotes[0].url
        identity = normalize_git_url(url, self.branch_resolver.forge_hosts)
        branch = await self.branch_resolver.read_local_head(path)

        return LocalRepositoryRecord(
            owner=identity.owner,
            repo=identity.repo,
            html_url=identity.html_url,
            name=path.name,
            path=path.as_posix(),
            url=url,
            default_branch=branch,
        )

    async def local_repo_info(self, path: Path | str) -> LocalRepositoryRecord | None:
        """Describe a single working copy.

        Returns:
            The record, or None when path is missing, has no .git or no remotes.

        Raises:
            MissingParameterError: If path is empty
            GitClientNotInstalledError: If path is a repo but git cannot be run
        """
        if not path:
            raise MissingParameterError("path")

        repo_path = Path(path).expanduser().absolute()
        if not await asyncio.to_thread(_has_git_marker, repo_path):
            return None

        await self.git.ensure_installed()
        return await self._inspect(repo_path)

    async def _search(
        self,
        path: Path,
        depth: int,
        options: ScanOptions,
        semaphore: asyncio.Semaphore,
    ) -> list[LocalRepositoryRecord]:
        try:
            if not await asyncio.to_thread(path.is_dir):
                return []

            async with semaphore:
                record = await self._inspect(path)

            items = [record] if record else []
            if record:
                log.debug("repository_found", path=record.path, full_name=record.full_name)

            if options.loop and depth < options.max_depth:
                children = await asyncio.to_thread(_list_subdirectories, path, options.exclude_dirs)
                results = await asyncio.gather(
                    *(self._search(child, depth + 1, options, semaphore) for child in children)
                )
                for result in results:
                    items.extend(result)

            return items

        except (RepoScoutError, OSError, ValidationError) as e:
            log.debug("subtree_scan_failed", path=path.as_posix(), depth=depth, error=str(e))
            return []

    async def scan(self, root: Path | str, options: ScanOptions | None = None) -> LocalRepositoryList:
        """Find every working copy under root.

        Args:
            root: Directory to start from (depth 0)
            options: Recursion, depth and exclusion settings

        Returns:
            LocalRepositoryList whose items come in no particular order

        Raises:
            MissingParameterError: If root is empty
            PathNotFoundError: If root does not exist
            GitClientNotInstalledError: If git cannot be run
        """
        if not root:
            raise MissingParameterError("root")

        options = options or ScanOptions()
        root_path = Path(root).expanduser().resolve()
        if not await asyncio.to_thread(root_path.exists):
            raise PathNotFoundError(root_path.as_posix())

        await self.git.ensure_installed()

        log.info(
            "scan_started",
            root=root_path.as_posix(),
            loop=options.loop,
            max_depth=options.max_depth,
            exclude_dirs=sorted(options.exclude_dirs),
        )

        semaphore = asyncio.Semaphore(self.max_concurrency)
        items = await self._search(root_path, 0, options, semaphore)

        log.info("scan_completed", root=root_path.as_posix(), total=len(items))
        return LocalRepositoryList(total=len(items), items=items)
