"""Package dependency resolution.

Maps installed npm packages to the Git repositories they are published from.

Example:
    >>> from repo_scout.packages import NpmPackageResolver
    >>> resolver = NpmPackageResolver()
    >>> result = await resolver.resolve_project_packages("/app")
"""

from repo_scout.packages.npm import NpmPackageResolver, repository_url

__all__ = ["NpmPackageResolver", "repository_url"]
