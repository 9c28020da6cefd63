"""Repository identity and discovery data models.

This module defines Pydantic models for canonical repository identities,
the records produced by local scans and package resolution, and the options
controlling them. All models are frozen; every call builds fresh records.

Example:
    >>> from repo_scout.git.models import RepositoryIdentity
    >>> identity = RepositoryIdentity(
    ...     owner="user",
    ...     repo="repo",
    ...     html_url="https://github.com/user/repo",
    ... )
    >>> identity.full_name
    'user/repo'
"""

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, field_validator

from repo_scout.enums import ResolutionStage


@dataclass(frozen=True)
class GitRemote:
    """A configured remote of a local working copy.

    Attributes:
        name: Remote name (e.g., 'origin', 'upstream')
        url: Push URL exactly as configured, possibly proxy-wrapped
    """

    name: str
    url: str


class RepositoryIdentity(BaseModel):
    """Canonical repository identity.

    Attributes:
        owner: Repository owner, user or organization (top-level group for nested groups)
        repo: Repository name without .git suffix
        html_url: Web URL, always https, never proxied, no .git suffix
    """

    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str
    html_url: str

    @field_validator("owner", "repo")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """Ensure owner and repo are not empty.

        Raises:
            ValueError: If value is empty or whitespace
        """
        if not v or not v.strip():
            raise ValueError("Owner and repo must not be empty")
        return v.strip()

    @field_validator("html_url")
    @classmethod
    def validate_canonical_url(cls, v: str) -> str:
        """Ensure the web URL is https and carries no .git suffix."""
        if not v.startswith("https://"):
            raise ValueError(f"html_url must use https: {v}")
        return v.removesuffix(".git")

    @property
    def full_name(self) -> str:
        """Get 'owner/repo'."""
        return f"{self.owner}/{self.repo}"


class LocalRepositoryRecord(RepositoryIdentity):
    """A Git working copy found on the local filesystem.

    Attributes:
        name: Directory basename
        path: Absolute path with forward slashes
        url: Original remote URL, possibly still proxy-wrapped
        default_branch: Branch the local HEAD points to
    """

    name: str
    path: str
    url: str
    default_branch: str


class PackageRepositoryRecord(BaseModel):
    """Upstream repository of an installed npm package."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    html_url: str
    owner: str
    repo: str
    default_branch: str


class ScanOptions(BaseModel):
    """Options for a local repository scan.

    Attributes:
        loop: Recurse into subdirectories; when False only the root is inspected
        max_depth: Deepest level visited below the root (root is depth 0)
        exclude_dirs: Directory names (not paths) never descended into
    """

    model_config = ConfigDict(frozen=True)

    loop: bool = False
    max_depth: int = Field(default=5, ge=0)
    exclude_dirs: frozenset[str] = Field(default_factory=frozenset)


class PackageFilterOptions(BaseModel):
    """Filters applied to a project's production dependency names.

    Attributes:
        exclude: Package names to skip
        prefix: When non-empty, only names starting with it are resolved
    """

    model_config = ConfigDict(frozen=True)

    exclude: frozenset[str] = Field(default_factory=frozenset)
    prefix: str = ""


class LocalRepositoryList(BaseModel):
    """Result of a scan. Items are in no particular order."""

    total: int
    items: list[LocalRepositoryRecord]


class PackageRepositoryList(BaseModel):
    """Result of resolving a project's dependencies. Items are unordered."""

    total: int
    items: list[PackageRepositoryRecord]


@dataclass(frozen=True)
class StageOutcome:
    """Result of one resolution stage: ``Ok(value)`` or ``Failed(reason)``.

    Attributes:
        stage: Stage that ran
        value: Branch name on success
        reason: Failure description otherwise
    """

    stage: ResolutionStage
    value: str | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.value is not None

    @classmethod
    def success(cls, stage: ResolutionStage, value: str) -> "StageOutcome":
        return cls(stage=stage, value=value)

    @classmethod
    def failure(cls, stage: ResolutionStage, reason: str) -> "StageOutcome":
        return cls(stage=stage, reason=reason)
