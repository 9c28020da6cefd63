"""Async subprocess utilities.

Provides non-blocking subprocess execution for the git and npm binaries,
so sibling directory checks and package lookups can run concurrently on one
event loop.

Key Features:
    - Non-blocking execution compatible with asyncio
    - Configurable timeout with automatic process cleanup
    - Optional check mode that raises on non-zero exit codes
    - UTF-8 decoding with replacement for invalid bytes

Example:
    >>> from repo_scout.utils.async_subprocess import run_command
    >>> stdout, stderr, code = await run_command("git", "--version")
    >>> if code == 0:
    ...     print(stdout)

Thread Safety:
    Safe to call concurrently from multiple async tasks. Each call creates
    an independent subprocess with no shared state.
"""

import asyncio
import os
import subprocess
from pathlib import Path


async def run_command(
    *args: str,
    cwd: Path | str | None = None,
    check: bool = True,
    timeout: float | None = None,
    env: dict[str, str] | None = None,
) -> tuple[str, str, int]:
    """Run a command asynchronously without shell interpolation.

    Args:
        *args: Command and arguments as separate strings. The first argument
            is the executable, e.g. "git", "ls-remote", "--symref", url.
        cwd: Working directory for command execution. If None, uses the
            current working directory of the parent process.
        check: If True (default), raise CalledProcessError when the command
            returns a non-zero exit code.
        timeout: Maximum seconds to wait for completion. If exceeded, the
            process is killed and TimeoutError is raised. None means wait
            indefinitely.
        env: Extra environment variables, merged over the parent's environment.

    Returns:
        Tuple of (stdout, stderr, return_code).

    Raises:
        subprocess.CalledProcessError: If check=True and the command exits
            non-zero. Carries stdout, stderr and the return code.
        TimeoutError: If timeout is exceeded. The process is killed first.
        FileNotFoundError: If the executable is not found.
        PermissionError: If the executable cannot be executed.

    Example:
        >>> stdout, _, _ = await run_command(
        ...     "git", "rev-parse", "--abbrev-ref", "HEAD",
        ...     cwd="/path/to/repo",
        ... )
        >>> stdout.strip()
        'main'

        >>> # npm list exits non-zero on extraneous packages but still prints JSON
        >>> stdout, stderr, code = await run_command(
        ...     "npm", "list", "--prod", "--depth=0", "--json",
        ...     cwd="/project",
        ...     check=False,
        ... )
    """
    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=cwd,
        env={**os.environ, **env} if env else None,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(),
            timeout=timeout,
        )
    except TimeoutError:
        process.kill()
        await process.wait()
        raise

    stdout = (stdout_bytes or b"").decode("utf-8", errors="replace")
    stderr = (stderr_bytes or b"").decode("utf-8", errors="replace")

    if check and process.returncode != 0:
        raise subprocess.CalledProcessError(
            process.returncode,
            args,
            stdout,
            stderr,
        )

    return stdout, stderr, process.returncode or 0
