"""Git repository identity, default branches and local discovery.

This package turns remote URLs (proxy-wrapped or not) into canonical
identities, resolves default branches from local HEADs, the Git protocol or
the REST API, and scans directory trees for working copies.

Example:
    >>> from repo_scout.git import normalize_git_url
    >>> normalize_git_url("git@github.com:user/repo.git").html_url
    'https://github.com/user/repo'
"""

from repo_scout.git.branch import BranchResolver, parse_symref_head, resolve_chain
from repo_scout.git.client import GitClient
from repo_scout.git.discovery import LocalRepositoryScanner
from repo_scout.git.models import (
    GitRemote,
    LocalRepositoryList,
    LocalRepositoryRecord,
    PackageFilterOptions,
    PackageRepositoryList,
    PackageRepositoryRecord,
    RepositoryIdentity,
    ScanOptions,
    StageOutcome,
)
from repo_scout.git.parser import GitUrlParser, normalize_git_url, unwrap_proxy_url

__all__ = [
    # Components
    "BranchResolver",
    "GitClient",
    "LocalRepositoryScanner",
    "resolve_chain",
    "parse_symref_head",
    # Parser
    "GitUrlParser",
    "normalize_git_url",
    "unwrap_proxy_url",
    # Models
    "GitRemote",
    "RepositoryIdentity",
    "LocalRepositoryRecord",
    "LocalRepositoryList",
    "PackageRepositoryRecord",
    "PackageRepositoryList",
    "ScanOptions",
    "PackageFilterOptions",
    "StageOutcome",
]
