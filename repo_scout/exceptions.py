"""Custom exception hierarchy for repo-scout.

This module defines a structured exception hierarchy that lets callers tell
"could not proceed at all" apart from the normal "nothing found" outcomes,
which are returned as ``None`` or empty lists instead of being raised.

Exception Hierarchy:
    RepoScoutError (base)
    ├── ConfigurationError
    ├── MissingParameterError
    ├── PathNotFoundError
    ├── GitOperationError
    │   ├── GitClientNotInstalledError
    │   └── BranchResolutionError
    ├── InvalidUrlError
    │   └── MissingRepoUrlError
    ├── ResolutionFailedError
    └── ExternalServiceError
        ├── PermissionDeniedError
        └── RepositoryNotFoundError

Every public operation runs inside :func:`operation_errors`, which stamps
the operation name onto the error before it reaches the caller.

Example Usage:
    >>> from repo_scout.exceptions import PathNotFoundError
    >>> try:
    ...     await scan_local_repos("/missing")
    ... except PathNotFoundError as e:
    ...     print(e.operation, e.message)
    scan_local_repos Local repository path /missing does not exist
"""

import functools
import inspect
from collections.abc import Callable
from typing import Any


class RepoScoutError(Exception):
    """Base exception for all repo-scout errors.

    Attributes:
        message: Human-readable error description, without any operation prefix
        operation: Name of the public operation that raised, once wrapped
    """

    def __init__(self, message: str) -> None:
        """Initialize exception.

        Args:
            message: Error message
        """
        self.message = message
        self.operation: str | None = None
        super().__init__(message)


class ConfigurationError(RepoScoutError):
    """Configuration file or settings value is invalid."""

    pass


class MissingParameterError(RepoScoutError):
    """A required path, URL or name was empty.

    Raised before any I/O is attempted; never retried.

    Attributes:
        parameter: Name of the missing parameter
    """

    def __init__(self, parameter: str) -> None:
        self.parameter = parameter
        super().__init__(f"Required parameter '{parameter}' must not be empty")


class PathNotFoundError(RepoScoutError):
    """A local path that must exist does not."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Local repository path {path} does not exist")


class GitOperationError(RepoScoutError):
    """Git binary invocation failed or produced unusable output."""

    pass


class GitClientNotInstalledError(GitOperationError):
    """The git binary is missing or not runnable."""

    def __init__(self, binary: str = "git") -> None:
        self.binary = binary
        super().__init__(f"Git client '{binary}' is not installed or not configured correctly")


class BranchResolutionError(GitOperationError):
    """No resolution stage produced a branch name."""

    pass


class InvalidUrlError(RepoScoutError):
    """A URL does not match any recognizable Git hosting URL shape.

    Attributes:
        url: The offending URL
    """

    def __init__(self, url: str, reason: str | None = None) -> None:
        self.url = url
        self.reason = reason
        message = f"Invalid Git URL: {url}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class MissingRepoUrlError(InvalidUrlError):
    """A URL parsed but did not yield an owner and repository name."""

    def __init__(self, url: str) -> None:
        super().__init__(url, reason="owner or repository name is missing")


class ResolutionFailedError(RepoScoutError):
    """Unexpected failure inside a public operation.

    Attributes:
        cause: Message of the underlying exception
    """

    def __init__(self, operation: str, cause: str) -> None:
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation


class ExternalServiceError(RepoScoutError):
    """Remote API communication errors.

    Attributes:
        status_code: HTTP status code (if applicable)
        response_text: Response body text (if applicable)
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_text: str | None = None,
    ) -> None:
        """Initialize exception.

        Args:
            message: Error message
            status_code: HTTP status code (if applicable)
            response_text: Response body text (if applicable)
        """
        self.status_code = status_code
        self.response_text = response_text

        full_message = message
        if status_code:
            full_message = f"{message} (HTTP {status_code})"

        super().__init__(full_message)
        self.message = message


class PermissionDeniedError(ExternalServiceError):
    """Repository does not exist or the token lacks access (401/403)."""

    pass


class RepositoryNotFoundError(ExternalServiceError):
    """Owner or repository not found (404)."""

    pass


def _stamp(error: RepoScoutError, name: str) -> None:
    if error.operation is None:
        error.operation = name
        error.args = (f"{name} failed: {error.args[0] if error.args else error.message}",)


def operation_errors(name: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator naming the public operation in every error it raises.

    A :class:`RepoScoutError` keeps its type; its ``operation`` is set and its
    string form becomes ``"<name> failed: <message>"`` while ``message`` keeps
    the original text. Any other exception is converted to
    :class:`ResolutionFailedError` chained to the original. Works on both
    plain and async functions.

    Args:
        name: Operation name used as the prefix

    Returns:
        Decorator preserving the wrapped function's sync/async nature
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                try:
                    return await func(*args, **kwargs)
                except RepoScoutError as e:
                    _stamp(e, name)
                    raise
                except Exception as e:
                    raise ResolutionFailedError(name, str(e) or type(e).__name__) from e

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except RepoScoutError as e:
                _stamp(e, name)
                raise
            except Exception as e:
                raise ResolutionFailedError(name, str(e) or type(e).__name__) from e

        return wrapper

    return decorator
