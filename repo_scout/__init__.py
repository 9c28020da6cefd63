"""repo-scout: repository identity resolution and local discovery.

Normalizes Git remote URLs (including proxy-wrapped ones), resolves default
branches from local HEADs, the Git protocol or the GitHub REST API, finds
working copies on disk and maps npm dependencies to their upstream repos.

Example:
    >>> import repo_scout
    >>> repo_scout.normalize_git_url("git@github.com:user/repo.git").full_name
    'user/repo'
"""

from repo_scout.api import (
    RepoScout,
    configure,
    local_default_branch,
    local_repo_info,
    normalize_git_url,
    remote_default_branch,
    resolve_package,
    resolve_project_packages,
    resolve_repo_default_branch,
    scan_local_repos,
)
from repo_scout.git.models import (
    LocalRepositoryList,
    LocalRepositoryRecord,
    PackageFilterOptions,
    PackageRepositoryList,
    PackageRepositoryRecord,
    RepositoryIdentity,
    ScanOptions,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Operations
    "normalize_git_url",
    "local_repo_info",
    "scan_local_repos",
    "local_default_branch",
    "remote_default_branch",
    "resolve_package",
    "resolve_project_packages",
    "resolve_repo_default_branch",
    "RepoScout",
    "configure",
    # Models
    "RepositoryIdentity",
    "LocalRepositoryRecord",
    "LocalRepositoryList",
    "PackageRepositoryRecord",
    "PackageRepositoryList",
    "ScanOptions",
    "PackageFilterOptions",
]
