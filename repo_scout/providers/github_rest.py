"""GitHub repository metadata over the REST API."""

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from repo_scout.enums import Visibility
from repo_scout.exceptions import (
    ExternalServiceError,
    MissingParameterError,
    PermissionDeniedError,
    RepositoryNotFoundError,
    RepoScoutError,
)
from repo_scout.git.branch import BranchResolver
from repo_scout.utils.connection_pool import HTTPConnectionPool, get_pool
from repo_scout.utils.date_format import DateFormatter
from repo_scout.utils.retry import TRANSIENT_STATUS_CODES, async_retry

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RepositoryInfo:
    """Repository metadata as reported by ``GET /repos/{owner}/{repo}``.

    Timestamps are ISO-8601 strings, or display strings when the client was
    given a DateFormatter.
    """

    id: int
    name: str
    full_name: str
    owner: str
    private: bool
    visibility: Visibility
    fork: bool
    archived: bool
    html_url: str
    description: str | None
    language: str | None
    default_branch: str
    created_at: str | None
    updated_at: str | None
    pushed_at: str | None


class GitHubRestClient:
    """Read-only GitHub REST client."""

    def __init__(
        self,
        base_url: str = "https://api.github.com",
        token: str | None = None,
        branch_resolver: BranchResolver | None = None,
        date_formatter: DateFormatter | None = None,
        timeout: float = 30.0,
    ):
        """Initialize GitHub client.

        Args:
            base_url: API base URL (GitHub Enterprise uses https://host/api/v3)
            token: Optional personal access token
            branch_resolver: Resolver whose chain ends at this client; one
                querying github.com is built when omitted
            date_formatter: Renders timestamps for display when given
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.token = token.strip() if token else None
        self.date_formatter = date_formatter
        self.timeout = timeout
        self.branch_resolver = branch_resolver or BranchResolver(api_client=self)
        if self.branch_resolver.api_client is None:
            self.branch_resolver.api_client = self

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _get_pool(self) -> HTTPConnectionPool:
        # Looked up on every request: pools belong to the event loop that opened them
        return await get_pool(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=self._headers(),
        )

    async def connect(self) -> None:
        """Open the shared connection pool for this API on the running loop."""
        await self._get_pool()
        log.debug("github_connected", base_url=self.base_url, authenticated=bool(self.token))

    async def __aenter__(self) -> "GitHubRestClient":
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Leave the pool open; close_all_pools() shuts it down."""

    @async_retry(
        max_attempts=3,
        backoff_factor=2.0,
        exceptions=(httpx.TransportError,),
        retry_on_result=lambda response: response.status_code in TRANSIENT_STATUS_CODES,
    )
    async def _fetch_repo(self, owner: str, repo: str) -> httpx.Response:
        pool = await self._get_pool()
        return await pool.get(f"/repos/{owner}/{repo}")

    async def get_repo_info(self, owner: str, repo: str) -> RepositoryInfo:
        """Get repository metadata.

        Raises:
            MissingParameterError: If owner or repo is empty
            PermissionDeniedError: On HTTP 401/403
            RepositoryNotFoundError: On HTTP 404
            ExternalServiceError: On any other failure
        """
        if not owner:
            raise MissingParameterError("owner")
        if not repo:
            raise MissingParameterError("repo")

        log.info("get_repo_info", owner=owner, repo=repo)

        try:
            response = await self._fetch_repo(owner, repo)
        except RepoScoutError:
            raise
        except Exception as e:
            raise ExternalServiceError(f"GitHub API request failed: {str(e) or type(e).__name__}") from e

        if response.status_code in (401, 403):
            raise PermissionDeniedError(
                f"Permission denied for {owner}/{repo}; check that the token has access",
                status_code=response.status_code,
                response_text=response.text,
            )
        if response.status_code == 404:
            raise RepositoryNotFoundError(
                f"Repository {owner}/{repo} not found",
                status_code=404,
                response_text=response.text,
            )
        if not response.is_success:
            raise ExternalServiceError(
                f"GitHub API error for {owner}/{repo}",
                status_code=response.status_code,
                response_text=response.text,
            )

        try:
            data = response.json()
            return self._parse_repository(data)
        except RepoScoutError:
            raise
        except Exception as e:
            raise ExternalServiceError(
                f"Unexpected GitHub API response for {owner}/{repo}: {e}",
                status_code=response.status_code,
            ) from e

    async def get_repo_visibility(self, owner: str, repo: str) -> Visibility:
        """Get whether the repository is public or private."""
        info = await self.get_repo_info(owner, repo)
        return info.visibility

    async def get_repo_default_branch(self, owner: str, repo: str) -> str:
        """Get the default branch, asking the Git protocol before the API.

        Raises:
            BranchResolutionError: If neither source answers
        """
        return await self.branch_resolver.resolve_repo_default_branch(owner, repo)

    def _timestamp(self, value: str | None) -> str | None:
        if value is None or self.date_formatter is None:
            return value
        return self.date_formatter.format_date(value)

    def _parse_repository(self, data: dict[str, Any]) -> RepositoryInfo:
        """Convert API response to RepositoryInfo."""
        private = bool(data.get("private", False))
        return RepositoryInfo(
            id=data["id"],
            name=data["name"],
            full_name=data["full_name"],
            owner=data["owner"]["login"],
            private=private,
            visibility=Visibility.PRIVATE if private else Visibility.PUBLIC,
            fork=bool(data.get("fork", False)),
            archived=bool(data.get("archived", False)),
            html_url=data["html_url"],
            description=data.get("description"),
            language=data.get("language"),
            default_branch=data["default_branch"],
            created_at=self._timestamp(data.get("created_at")),
            updated_at=self._timestamp(data.get("updated_at")),
            pushed_at=self._timestamp(data.get("pushed_at")),
        )
