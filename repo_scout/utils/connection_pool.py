"""
Shared keep-alive httpx clients for REST API access.

Pools are keyed by event loop, base URL and request headers, so two API
clients holding different tokens never share a connection, and a client is
never reused after its loop has closed. The CLI closes every pool once its
command has finished.
"""

import asyncio
import hashlib
import json
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PoolLimits:
    """Connection limits applied to one pool."""

    max_connections: int = 10
    max_keepalive_connections: int = 5
    keepalive_expiry: float = 30.0


def pool_key(base_url: str, headers: dict[str, str] | None = None) -> str:
    """Build the registry key for a base URL and header set.

    Header values are hashed so tokens never appear in keys or logs.

    Example:
        >>> pool_key("https://api.github.com/") == pool_key("https://api.github.com")
        True
    """
    fingerprint = json.dumps(sorted((headers or {}).items()))
    digest = hashlib.sha256(fingerprint.encode("utf-8")).hexdigest()[:12]
    return f"{base_url.rstrip('/')}#{digest}"


class HTTPConnectionPool:
    """One lazily created ``httpx.AsyncClient`` bound to an API base URL.

    Redirects are followed because GitHub answers requests for renamed or
    transferred repositories with 301.
    """

    def __init__(
        self,
        base_url: str,
        limits: PoolLimits | None = None,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.limits = limits or PoolLimits()
        self.timeout = timeout
        self.headers = dict(headers or {})
        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    @property
    def closed(self) -> bool:
        return self._client is None

    async def initialize(self) -> None:
        """Create the underlying client if it does not exist yet."""
        async with self._lock:
            if self._client is not None:
                return

            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                limits=httpx.Limits(
                    max_connections=self.limits.max_connections,
                    max_keepalive_connections=self.limits.max_keepalive_connections,
                    keepalive_expiry=self.limits.keepalive_expiry,
                ),
                timeout=self.timeout,
                http2=True,
                headers=self.headers,
                follow_redirects=True,
            )
            log.debug("connection_pool_opened", base_url=self.base_url)

    async def close(self) -> None:
        async with self._lock:
            if self._client is None:
                return
            await self._client.aclose()
            self._client = None
            log.debug("connection_pool_closed", base_url=self.base_url)

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        """Send a GET request relative to the base URL."""
        if self._client is None:
            await self.initialize()

        assert self._client is not None
        return await self._client.get(path, **kwargs)

    async def __aenter__(self) -> "HTTPConnectionPool":
        await self.initialize()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


class ConnectionPoolManager:
    """Registry of open pools, one per event loop, base URL and header set.

    An ``httpx.AsyncClient`` cannot outlive the loop it was opened on, so each
    running loop gets its own pools; pools of loops that have since closed are
    dropped on the next lookup.
    """

    def __init__(self) -> None:
        self._pools: dict[tuple[int, str], tuple[asyncio.AbstractEventLoop, HTTPConnectionPool]] = {}

    def __len__(self) -> int:
        return len(self._pools)

    def _discard_stale(self) -> None:
        for slot, (loop, pool) in list(self._pools.items()):
            if loop.is_closed():
                del self._pools[slot]
                log.debug("connection_pool_discarded", base_url=pool.base_url)

    async def get_pool(
        self,
        base_url: str,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        limits: PoolLimits | None = None,
    ) -> HTTPConnectionPool:
        """Return the running loop's pool for base_url and headers, creating it on first use."""
        loop = asyncio.get_running_loop()
        self._discard_stale()

        slot = (id(loop), pool_key(base_url, headers))
        entry = self._pools.get(slot)
        if entry is None or entry[0] is not loop or entry[1].closed:
            pool = HTTPConnectionPool(base_url, limits=limits, timeout=timeout, headers=headers)
            self._pools[slot] = (loop, pool)
            log.info("connection_pool_created", base_url=pool.base_url, pools=len(self._pools))
        else:
            pool = entry[1]

        await pool.initialize()
        return pool

    async def close_all(self) -> None:
        """Close the running loop's pools and forget those of closed loops."""
        loop = asyncio.get_running_loop()
        self._discard_stale()

        owned = [slot for slot, (pool_loop, _) in self._pools.items() if pool_loop is loop]
        pools = [self._pools.pop(slot)[1] for slot in owned]
        for pool in pools:
            await pool.close()
        if pools:
            log.info("connection_pools_closed", count=len(pools))


# Process-wide registry used by the REST clients
_pool_manager = ConnectionPoolManager()


async def get_pool(
    base_url: str,
    timeout: float = 30.0,
    headers: dict[str, str] | None = None,
    limits: PoolLimits | None = None,
) -> HTTPConnectionPool:
    """Get a pool from the process-wide registry."""
    return await _pool_manager.get_pool(base_url, timeout=timeout, headers=headers, limits=limits)


async def close_all_pools() -> None:
    """Close every pool the running loop opened in the process-wide registry."""
    await _pool_manager.close_all()
