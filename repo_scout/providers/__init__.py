"""Remote hosting API clients.

Example:
    >>> from repo_scout.providers import GitHubRestClient
    >>> async with GitHubRestClient(token="ghp_...") as client:
    ...     info = await client.get_repo_info("user", "repo")
"""

from repo_scout.providers.github_rest import GitHubRestClient, RepositoryInfo

__all__ = ["GitHubRestClient", "RepositoryInfo"]
