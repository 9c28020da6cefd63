"""Retry with exponential backoff for REST calls.

A dropped connection or a transient 5xx/429 answer is worth another attempt.
A 404 is not. :func:`async_retry` retries on listed exception types and,
optionally, on results a predicate marks as transient. When the attempts run
out, the last exception is raised or the last result returned, so callers
still map the final HTTP status themselves.

Example:
    >>> @async_retry(
    ...     max_attempts=3,
    ...     exceptions=(httpx.TransportError,),
    ...     retry_on_result=lambda r: r.status_code in TRANSIENT_STATUS_CODES,
    ... )
    ... async def fetch_repo(owner: str, repo: str) -> httpx.Response:
    ...     return await pool.get(f"/repos/{owner}/{repo}")

Backoff Formula:
    delay = min(backoff_factor ** attempt_number, max_delay)
    For backoff_factor=2.0: 2s, 4s, 8s, ... capped at max_delay
"""

import asyncio
import functools
from collections.abc import Callable
from typing import Any

import structlog

log = structlog.get_logger(__name__)

# Rate limiting and gateway errors GitHub documents as retryable
TRANSIENT_STATUS_CODES = frozenset({429, 502, 503, 504})


def async_retry(
    max_attempts: int = 3,
    backoff_factor: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    retry_on_result: Callable[[Any], bool] | None = None,
    max_delay: float = 30.0,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator retrying an async function with exponential backoff.

    Args:
        max_attempts: Total number of calls before giving up
        backoff_factor: The delay before attempt N+1 is backoff_factor^N seconds
        exceptions: Exception types that trigger a retry; others propagate at once
        retry_on_result: Predicate marking a returned value as transient
        max_delay: Upper bound for a single delay in seconds

    Returns:
        Decorator for async functions.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        name = getattr(func, "__qualname__", getattr(func, "__name__", repr(func)))

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(1, max_attempts + 1):
                try:
                    result = await func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_attempts:
                        log.error("retry_exhausted", function=name, attempts=attempt, error=str(e))
                        raise
                    reason = str(e) or type(e).__name__
                else:
                    if retry_on_result is None or not retry_on_result(result):
                        return result
                    if attempt == max_attempts:
                        log.warning("retry_exhausted", function=name, attempts=attempt, result=repr(result))
                        return result
                    reason = repr(result)

                delay = min(backoff_factor**attempt, max_delay)
                log.warning(
                    "retry_attempt",
                    function=name,
                    attempt=attempt,
                    max_attempts=max_attempts,
                    delay=delay,
                    reason=reason,
                )
                await asyncio.sleep(delay)

            raise AssertionError("unreachable")

        return wrapper

    return decorator
