"""Default-branch resolution.

Three sources can name a repository's default branch: the local HEAD of a
working copy, the remote's symbolic HEAD over the Git protocol, and the REST
API. Local and remote lookups are separate operations because a checkout
may legitimately sit on a non-default branch. The combined lookup for an
``owner/repo`` pair is an ordered chain of stages, each returning a
:class:`StageOutcome`; :func:`resolve_chain` returns the first success and
raises only when every stage failed.

Example:
    >>> resolver = BranchResolver(GitClient(), api_client=GitHubRestClient())
    >>> await resolver.local_default_branch("/src/repo")
    'feature/login'
    >>> await resolver.remote_default_branch("https://github.com/user/repo")
    'main'
    >>> outcome = await resolver.resolve_repo_default_branch_outcome("user", "repo")
    >>> outcome.stage, outcome.value
    (<ResolutionStage.REMOTE_GIT_PROTOCOL: 'remote-git-protocol'>, 'main')
"""

import asyncio
import re
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import urlparse

import structlog

from repo_scout.enums import ResolutionStage
from repo_scout.exceptions import (
    BranchResolutionError,
    GitOperationError,
    InvalidUrlError,
    MissingParameterError,
    MissingRepoUrlError,
    PathNotFoundError,
    RepoScoutError,
)
from repo_scout.git.client import GitClient
from repo_scout.git.models import StageOutcome
from repo_scout.git.parser import FORGE_HOSTS, normalize_git_url

log = structlog.get_logger(__name__)

HEAD_REF_PATTERN = re.compile(r"^ref: refs/heads/([^\t\n]+)", re.MULTILINE)

Stage = Callable[[], Awaitable[StageOutcome]]


class RepoInfoClient(Protocol):
    """Anything that can fetch repository info with a ``default_branch``."""

    async def get_repo_info(self, owner: str, repo: str) -> Any: ...


def parse_symref_head(output: str) -> str | None:
    """Extract the branch from ``git ls-remote --symref <url> HEAD`` output.

    Example:
        >>> parse_symref_head("ref: refs/heads/main\\tHEAD\\n3f2a...\\tHEAD\\n")
        'main'
    """
    match = HEAD_REF_PATTERN.search(output)
    return match.group(1) if match else None


async def resolve_chain(stages: Sequence[tuple[ResolutionStage, Stage]]) -> StageOutcome:
    """Run stages in order and return the first successful outcome.

    A stage raising RepoScoutError counts as a failed outcome.

    Args:
        stages: (stage, coroutine factory) pairs in precedence order

    Raises:
        BranchResolutionError: With the last failure reason once all stages fail
    """
    last: StageOutcome | None = None
    for stage, run in stages:
        try:
            outcome = await run()
        except RepoScoutError as e:
            outcome = StageOutcome.failure(stage, str(e))

        if outcome.ok:
            log.debug("branch_stage_succeeded", stage=str(outcome.stage), branch=outcome.value)
            return outcome

        log.debug("branch_stage_failed", stage=str(outcome.stage), reason=outcome.reason)
        last = outcome

    reason = last.reason if last else "no resolution stages configured"
    raise BranchResolutionError(f"Unable to resolve default branch: {reason}")


class BranchResolver:
    """Resolves default branches from local, Git-protocol and REST sources.

    Args:
        git: Git client used for local and remote queries
        api_client: REST client used as the last stage of the combined chain
        web_base_url: Base used to build the remote URL for owner/repo lookups
    """

    def __init__(
        self,
        git: GitClient | None = None,
        api_client: RepoInfoClient | None = None,
        web_base_url: str = "https://github.com",
    ) -> None:
        self.git = git or GitClient()
        self.api_client = api_client
        self.web_base_url = web_base_url.rstrip("/")

    @property
    def forge_hosts(self) -> frozenset[str]:
        """Hosts never treated as proxies: the public forges plus the configured web host."""
        host = urlparse(self.web_base_url).hostname
        return FORGE_HOSTS | {host} if host else FORGE_HOSTS

    async def read_local_head(self, path: Path | str) -> str:
        """Read HEAD of a working copy without re-checking preconditions.

        Raises:
            BranchResolutionError: If HEAD cannot be read or is empty
        """
        try:
            head = await self.git.head_branch(path)
        except GitOperationError as e:
            raise BranchResolutionError(f"Unable to read branch of {path}: {e.message}") from e

        if not head:
            raise BranchResolutionError(
                f"Unable to read branch of {path}; make sure the repository is initialized"
            )
        return head

    async def local_default_branch(self, path: Path | str) -> str:
        """Get the branch the local HEAD of a working copy points to.

        Raises:
            MissingParameterError: If path is empty
            GitClientNotInstalledError: If git cannot be run
            PathNotFoundError: If path does not exist or has no .git marker
            BranchResolutionError: If HEAD cannot be read
        """
        if not path:
            raise MissingParameterError("path")

        await self.git.ensure_installed()

        repo_path = Path(path)
        if not await asyncio.to_thread(lambda: (repo_path / ".git").exists()):
            raise PathNotFoundError(repo_path.as_posix())

        head = await self.read_local_head(repo_path)
        log.debug("branch_resolved", stage=str(ResolutionStage.LOCAL), path=repo_path.as_posix(), branch=head)
        return head

    async def remote_default_branch(self, url: str) -> str:
        """Get the default branch of a remote over the Git protocol.

        The URL is queried as given, proxy prefix included.

        Raises:
            MissingParameterError: If url is empty
            GitClientNotInstalledError: If git cannot be run
            MissingRepoUrlError: If the URL does not name an owner and repo
            BranchResolutionError: If the remote reports no symbolic HEAD
        """
        if not url:
            raise MissingParameterError("url")

        await self.git.ensure_installed()

        try:
            normalize_git_url(url, self.forge_hosts)
        except InvalidUrlError as e:
            raise MissingRepoUrlError(url) from e

        try:
            output = await self.git.ls_remote_head(url)
        except GitOperationError as e:
            raise BranchResolutionError(f"Unable to query remote {url}: {e.message}") from e

        branch = parse_symref_head(output)
        if branch is None:
            raise BranchResolutionError(f"Remote {url} did not report a default branch")

        log.debug("branch_resolved", stage=str(ResolutionStage.REMOTE_GIT_PROTOCOL), url=url, branch=branch)
        return branch

    async def _remote_protocol_stage(self, owner: str, repo: str) -> StageOutcome:
        url = f"{self.web_base_url}/{owner}/{repo}"
        try:
            branch = await self.remote_default_branch(url)
        except (RepoScoutError, OSError) as e:
            return StageOutcome.failure(ResolutionStage.REMOTE_GIT_PROTOCOL, str(e))
        return StageOutcome.success(ResolutionStage.REMOTE_GIT_PROTOCOL, branch)

    async def _remote_api_stage(self, owner: str, repo: str) -> StageOutcome:
        if self.api_client is None:
            return StageOutcome.failure(ResolutionStage.REMOTE_API, "no REST API client configured")
        try:
            info = await self.api_client.get_repo_info(owner, repo)
        except RepoScoutError as e:
            return StageOutcome.failure(ResolutionStage.REMOTE_API, str(e))

        branch = getattr(info, "default_branch", None)
        if not branch:
            return StageOutcome.failure(ResolutionStage.REMOTE_API, "API response has no default_branch")
        return StageOutcome.success(ResolutionStage.REMOTE_API, branch)

    async def resolve_repo_default_branch_outcome(self, owner: str, repo: str) -> StageOutcome:
        """Run the remote-protocol then REST chain and report which stage won.

        Raises:
            MissingParameterError: If owner or repo is empty
            BranchResolutionError: If both stages fail
        """
        if not owner:
            raise MissingParameterError("owner")
        if not repo:
            raise MissingParameterError("repo")

        outcome = await resolve_chain(
            [
                (ResolutionStage.REMOTE_GIT_PROTOCOL, lambda: self._remote_protocol_stage(owner, repo)),
                (ResolutionStage.REMOTE_API, lambda: self._remote_api_stage(owner, repo)),
            ]
        )
        log.info("default_branch_resolved", owner=owner, repo=repo, stage=str(outcome.stage), branch=outcome.value)
        return outcome

    async def resolve_repo_default_branch(self, owner: str, repo: str) -> str:
        """Get the default branch of owner/repo, falling back to the REST API.

        Raises:
            MissingParameterError: If owner or repo is empty
            BranchResolutionError: If both stages fail
        """
        outcome = await self.resolve_repo_default_branch_outcome(owner, repo)
        assert outcome.value is not None
        return outcome.value
