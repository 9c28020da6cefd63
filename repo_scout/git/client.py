"""Async wrapper around the installed git binary.

Every method spawns one ``git`` subprocess through
:func:`repo_scout.utils.async_subprocess.run_command`; nothing is cached
between calls.
"""

import subprocess
from pathlib import Path

import structlog

from repo_scout.exceptions import GitClientNotInstalledError, GitOperationError
from repo_scout.git.models import GitRemote
from repo_scout.utils.async_subprocess import run_command

log = structlog.get_logger(__name__)

# Never block waiting for credentials on a remote query
_NON_INTERACTIVE_ENV = {"GIT_TERMINAL_PROMPT": "0"}


class GitClient:
    """Runs git commands asynchronously.

    Args:
        binary: Git executable name or path
        timeout: Seconds before a git subprocess is killed; None waits forever
    """

    def __init__(self, binary: str = "git", timeout: float | None = None) -> None:
        self.binary = binary
        self.timeout = timeout

    async def _git(self, *args: str, cwd: Path | str | None = None) -> str:
        try:
            stdout, _, _ = await run_command(
                self.binary,
                *args,
                cwd=cwd,
                check=True,
                timeout=self.timeout,
                env=_NON_INTERACTIVE_ENV,
            )
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or "").strip() or f"exit code {e.returncode}"
            raise GitOperationError(f"git {args[0]} failed: {detail}") from e
        except TimeoutError as e:
            raise GitOperationError(f"git {args[0]} timed out after {self.timeout}s") from e
        return stdout

    async def version(self) -> str | None:
        """Get the git version string, or None when git cannot be run.

        Example:
            >>> await GitClient().version()
            'git version 2.43.0'
        """
        try:
            stdout = await self._git("--version")
        except (OSError, GitOperationError) as e:
            log.debug("git_version_unavailable", binary=self.binary, error=str(e))
            return None
        return stdout.strip() or None

    async def is_installed(self) -> bool:
        """Check whether git is installed."""
        return await self.version() is not None

    async def ensure_installed(self) -> None:
        """Raise GitClientNotInstalledError unless git runs."""
        if not await self.is_installed():
            raise GitClientNotInstalledError(self.binary)

    async def list_remotes(self, path: Path | str) -> list[GitRemote]:
        """List configured remotes with their push URLs, in git's order.

        Raises:
            GitOperationError: If git fails inside the directory
        """
        stdout = await self._git("remote", "-v", cwd=path)

        remotes: dict[str, str] = {}
        for line in stdout.splitlines():
            parts = line.split()
            if len(parts) < 3 or parts[2] != "(push)":
                continue
            remotes.setdefault(parts[0], parts[1])

        return [GitRemote(name=name, url=url) for name, url in remotes.items()]

    async def head_branch(self, path: Path | str) -> str:
        """Get the abbreviated name of HEAD in a working copy ('' if unknown)."""
        stdout = await self._git("rev-parse", "--abbrev-ref", "HEAD", cwd=path)
        return stdout.strip()

    async def ls_remote_head(self, url: str) -> str:
        """Query a remote's symbolic HEAD with ``ls-remote --symref``."""
        return await self._git("ls-remote", "--symref", url, "HEAD")
