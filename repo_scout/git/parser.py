"""Git URL parsing and normalization.

This module turns any Git remote URL, including URLs routed through a
download proxy, into a canonical :class:`RepositoryIdentity`.

Supported URL formats:
    HTTPS / HTTP:
        - https://github.com/owner/repo.git
        - https://gitea.example.com:3000/owner/repo
    Other schemes:
        - ssh://git@github.com/owner/repo.git
        - git://github.com/owner/repo.git
        - git+https://github.com/owner/repo.git (npm style)
    SCP-style SSH:
        - git@github.com:owner/repo.git
    npm shorthands:
        - github:owner/repo, gitlab:owner/repo, bitbucket:owner/repo
        - owner/repo (GitHub implied)
    Proxy-wrapped (one level):
        - https://ghproxy.com/github.com/owner/repo.git
        - https://ghproxy.com/https://github.com/owner/repo.git

Example:
    >>> from repo_scout.git.parser import normalize_git_url
    >>> normalize_git_url("https://ghproxy.com/https://github.com/user/repo.git")
    RepositoryIdentity(owner='user', repo='repo', html_url='https://github.com/user/repo')

Thread Safety:
    GitUrlParser instances are immutable after initialization.
"""

import re
from collections.abc import Collection
from typing import Literal

from repo_scout.exceptions import InvalidUrlError, MissingParameterError
from repo_scout.git.models import RepositoryIdentity

UrlType = Literal["https", "ssh", "git", "shorthand"]

# <scheme>://<proxy-host>/[<scheme>://]<host>/<owner>/<repo>
PROXY_PATTERN = re.compile(r"^https?://(?P<proxy>[^/]+)/(?P<scheme>https?://)?(?P<target>[^/]+/[^/]+/[^/]+)")

SHORTHAND_HOSTS = {
    "github": "github.com",
    "gitlab": "gitlab.com",
    "bitbucket": "bitbucket.org",
}

# Hosts serving repositories directly; a URL on one of them is never a proxy
FORGE_HOSTS = frozenset(SHORTHAND_HOSTS.values())

_DOMAIN_PATTERN = re.compile(r"^[a-z0-9-]+(?:\.[a-z0-9-]+)*\.[a-z]{2,}$", re.IGNORECASE)

# hostname or IPv4 address, optionally with a port
_TARGET_HOST_PATTERN = re.compile(
    r"^(?:[a-z0-9-]+(?:\.[a-z0-9-]+)*\.[a-z]{2,}|\d{1,3}(?:\.\d{1,3}){3})(?::\d+)?$",
    re.IGNORECASE,
)


def _hostname(netloc: str) -> str:
    return netloc.rsplit("@", 1)[-1].split(":", 1)[0].lower()


def unwrap_proxy_url(url: str, forge_hosts: Collection[str] = FORGE_HOSTS) -> tuple[str, bool]:
    """Strip a single proxy prefix from a URL.

    A URL whose own host is a known forge is returned untouched, so dotted
    group names such as ``https://gitlab.com/my.group/sub/app`` stay intact.
    On any other host the first path segment is taken as the wrapped host
    when the wrapped URL carries its own scheme or the segment is shaped like
    a hostname. A dotted segment that is neither cannot be told apart from a
    dotted owner and raises.

    Args:
        url: Possibly proxy-wrapped URL
        forge_hosts: Hostnames that are never treated as proxies

    Returns:
        Tuple of (url, unwrapped) where unwrapped tells whether a rewrite happened.

    Raises:
        InvalidUrlError: If the URL may or may not be proxy-wrapped

    Example:
        >>> unwrap_proxy_url("https://ghproxy.com/github.com/user/repo.git")
        ('https://github.com/user/repo.git', True)
        >>> unwrap_proxy_url("https://github.com/user/repo.git")
        ('https://github.com/user/repo.git', False)
    """
    match = PROXY_PATTERN.match(url)
    if not match:
        return url, False

    if _hostname(match.group("proxy")) in {host.lower() for host in forge_hosts}:
        return url, False

    target = match.group("target")
    first = target.split("/", 1)[0]
    if "." not in first:
        return url, False

    if not match.group("scheme") and not _TARGET_HOST_PATTERN.match(first):
        raise InvalidUrlError(url, reason=f"cannot tell whether '{first}' is a proxied host or an owner")

    return f"https://{target}", True


class GitUrlParser:
    """Parser for Git remote URLs, including proxy-wrapped ones.

    Parses the URL immediately; if parsing fails the constructor raises
    InvalidUrlError. The owner is the first path component and the repo the
    second, so nested GitLab groups keep only their top-level group.

    Attributes:
        url: Original URL after whitespace trimming.
        url_type: Kind of URL detected.
        proxied: Whether a proxy prefix was removed.
        host: Hostname of the Git server.
        port: Port for http(s) URLs with a non-standard port, else None.
        owner: Repository owner/organization name.
        repo: Repository name without .git suffix.

    Example:
        >>> parser = GitUrlParser("git@github.com:owner/repo.git")
        >>> parser.url_type
        'ssh'
        >>> parser.html_url
        'https://github.com/owner/repo'

        >>> parser = GitUrlParser("https://gitea.example.com:3000/myorg/myrepo.git")
        >>> parser.port
        3000
        >>> parser.html_url
        'https://gitea.example.com:3000/myorg/myrepo'
    """

    # scheme://[user@]host[:port]/path
    URL_PATTERN = re.compile(
        r"^(?P<scheme>https?|ssh|git|git\+ssh)://(?:[^@/]+@)?(?P<host>[a-zA-Z0-9._-]+)"
        r"(?::(?P<port>\d+))?/(?P<path>.+?)(?:\.git)?/?$"
    )

    # user@host:path; requires user@ so that scheme URLs never match
    SSH_PATTERN = re.compile(r"^(?P<user>[\w.-]+)@(?P<host>[a-zA-Z0-9._-]+):(?!//)(?P<path>.+?)(?:\.git)?/?$")

    # github:owner/repo or owner/repo
    SHORTHAND_PATTERN = re.compile(r"^(?:(?P<provider>github|gitlab|bitbucket):)?(?P<path>[\w.-]+/[\w.-]+?)(?:\.git)?$")

    def __init__(self, url: str, forge_hosts: Collection[str] | None = None) -> None:
        """Initialize parser with a Git URL.

        Args:
            url: Git URL to parse. Whitespace and a leading ``git+`` are removed.
            forge_hosts: Hosts never treated as proxies; defaults to FORGE_HOSTS.

        Raises:
            MissingParameterError: If the URL is empty.
            InvalidUrlError: If the URL shape is not recognized, lacks an
                owner or repo, wraps more than one proxy, or is ambiguous.
        """
        if not url or not url.strip():
            raise MissingParameterError("url")

        self.url = url.strip()
        self._url_type: UrlType | None = None
        self._host: str | None = None
        self._port: int | None = None
        self._owner: str | None = None
        self._repo: str | None = None

        candidate = self.url.removeprefix("git+")
        candidate, self.proxied = unwrap_proxy_url(candidate, FORGE_HOSTS if forge_hosts is None else forge_hosts)
        self._parse(candidate)

    def _parse(self, url: str) -> None:
        """Fill host/port/owner/repo from a proxy-free URL."""
        if match := self.URL_PATTERN.match(url):
            scheme = match.group("scheme")
            self._url_type = "https" if scheme.startswith("http") else ("git" if scheme == "git" else "ssh")
            self._host = match.group("host")
            port = match.group("port")
            if port and self._url_type == "https" and port not in ("80", "443"):
                self._port = int(port)
            path = match.group("path")
        elif match := self.SSH_PATTERN.match(url):
            self._url_type = "ssh"
            self._host = match.group("host")
            path = match.group("path")
        elif match := self.SHORTHAND_PATTERN.match(url):
            self._url_type = "shorthand"
            self._host = SHORTHAND_HOSTS[match.group("provider") or "github"]
            path = match.group("path")
        else:
            raise InvalidUrlError(self.url, reason="unrecognized Git URL format")

        if "://" in path:
            raise InvalidUrlError(self.url, reason="nested proxy URLs are not supported")

        parts = [p for p in path.split("/") if p]
        if len(parts) < 2:
            raise InvalidUrlError(self.url, reason="expected owner/repo in path")

        owner, repo = parts[0], parts[1].removesuffix(".git")
        if not owner or not repo:
            raise InvalidUrlError(self.url, reason="owner or repository name is missing")

        if self.proxied and _DOMAIN_PATTERN.match(owner):
            raise InvalidUrlError(self.url, reason="nested proxy URLs are not supported")

        self._owner = owner
        self._repo = repo

    @property
    def url_type(self) -> UrlType:
        """Get the URL type: 'https', 'ssh', 'git' or 'shorthand'."""
        if self._url_type is None:
            raise ValueError("URL not parsed")
        return self._url_type

    @property
    def host(self) -> str:
        """Get the hostname of the Git server."""
        if self._host is None:
            raise ValueError("URL not parsed")
        return self._host

    @property
    def port(self) -> int | None:
        """Get the port number, only for http(s) URLs with a non-standard port."""
        return self._port

    @property
    def owner(self) -> str:
        """Get the repository owner/organization name."""
        if self._owner is None:
            raise ValueError("URL not parsed")
        return self._owner

    @property
    def repo(self) -> str:
        """Get the repository name without .git suffix."""
        if self._repo is None:
            raise ValueError("URL not parsed")
        return self._repo

    @property
    def base_url(self) -> str:
        """Get the https base URL of the host, with port when one was given.

        Example:
            >>> GitUrlParser("git@github.com:o/r.git").base_url
            'https://github.com'
        """
        if self._port:
            return f"https://{self.host}:{self._port}"
        return f"https://{self.host}"

    @property
    def html_url(self) -> str:
        """Get the canonical web URL: https, no proxy, no .git suffix."""
        return f"{self.base_url}/{self.owner}/{self.repo}"

    @property
    def https_url(self) -> str:
        """Get the HTTPS clone URL."""
        return f"{self.html_url}.git"

    @property
    def ssh_url(self) -> str:
        """Get the SSH clone URL in the form git@host:owner/repo.git.

        SSH URLs don't include port numbers.
        """
        return f"git@{self.host}:{self.owner}/{self.repo}.git"

    def identity(self) -> RepositoryIdentity:
        """Build the canonical identity for this URL."""
        return RepositoryIdentity(owner=self.owner, repo=self.repo, html_url=self.html_url)


def normalize_git_url(url: str, forge_hosts: Collection[str] | None = None) -> RepositoryIdentity:
    """Normalize any Git remote URL into its canonical identity.

    Args:
        url: Direct or proxy-wrapped remote URL
        forge_hosts: Hosts never treated as proxies; defaults to FORGE_HOSTS

    Returns:
        RepositoryIdentity with owner, repo and https html_url

    Raises:
        MissingParameterError: If url is empty
        InvalidUrlError: If the URL cannot be identified

    Example:
        >>> normalize_git_url("https://ghproxy.com/github.com/user/repo.git").html_url
        'https://github.com/user/repo'
    """
    return GitUrlParser(url, forge_hosts).identity()
