"""httpx clients with the disk cache already wired in.

:class:`CachedClient` is an :class:`httpx.Client` whose transport is a
:class:`~transparent_cache.client.transport.CachingTransport`.  Closing the
client (``close()`` or leaving the ``with`` block) closes the transport,
which runs the eviction sweep.  A program that keeps one client for its
lifetime therefore evicts stale entries at shutdown without any global
exit hook.

Streamed requests (:meth:`httpx.Client.stream`) are marked with the bypass
extension and never touch the cache.

Example::

    config = CacheConfig(base_path="/tmp/cache", no_update=15 * 60)
    with CachedClient(config) as client:
        response = client.get("http://www.example.com/")
        response.headers.get("X-Cached")
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncIterator, Callable, Iterator, Optional

import httpx

from transparent_cache.cache.protocol import BYPASS_EXTENSION
from transparent_cache.client.transport import AsyncCachingTransport, CachingTransport
from transparent_cache.models import CacheConfig, SweepResult


def _bypass_extensions(kwargs: dict[str, Any]) -> dict[str, Any]:
    extensions = dict(kwargs.pop("extensions", None) or {})
    extensions[BYPASS_EXTENSION] = True
    return extensions


class CachedClient(httpx.Client):
    """Synchronous :class:`httpx.Client` that caches GET responses on disk.

    Args:
        config: Cache configuration.
        transport: The network transport to wrap.  Defaults to
            :class:`httpx.HTTPTransport`.
        sweep_on_close: Run the eviction sweep when the client is closed.
        clock: Wall-clock source, injectable for tests.
        **kwargs: Forwarded to :class:`httpx.Client` (``timeout``,
            ``headers``, ``follow_redirects``, ...).

    Raises:
        CacheDirectoryError: If the cache directory cannot be created.
    """

    def __init__(
        self,
        config: CacheConfig,
        transport: Optional[httpx.BaseTransport] = None,
        sweep_on_close: bool = True,
        clock: Callable[[], float] = time.time,
        **kwargs: Any,
    ) -> None:
        self._cache_transport = CachingTransport(
            config, inner=transport, clock=clock, sweep_on_close=sweep_on_close,
        )
        super().__init__(transport=self._cache_transport, **kwargs)

    @property
    def cache(self) -> CachingTransport:
        """The caching transport (exposes ``store``, ``config`` and ``sweep()``)."""
        return self._cache_transport

    @property
    def last_sweep(self) -> Optional[SweepResult]:
        """Result of the sweep run when the client was closed, if any."""
        return self._cache_transport.last_sweep

    @contextmanager
    def stream(self, method: str, url: Any, **kwargs: Any) -> Iterator[httpx.Response]:
        """Stream a response, bypassing the cache."""
        extensions = _bypass_extensions(kwargs)
        with super().stream(method, url, extensions=extensions, **kwargs) as response:
            yield response


class AsyncCachedClient(httpx.AsyncClient):
    """Asynchronous counterpart of :class:`CachedClient`."""

    def __init__(
        self,
        config: CacheConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sweep_on_close: bool = True,
        clock: Callable[[], float] = time.time,
        **kwargs: Any,
    ) -> None:
        self._cache_transport = AsyncCachingTransport(
            config, inner=transport, clock=clock, sweep_on_close=sweep_on_close,
        )
        super().__init__(transport=self._cache_transport, **kwargs)

    @property
    def cache(self) -> AsyncCachingTransport:
        return self._cache_transport

    @property
    def last_sweep(self) -> Optional[SweepResult]:
        return self._cache_transport.last_sweep

    @asynccontextmanager
    async def stream(self, method: str, url: Any, **kwargs: Any) -> AsyncIterator[httpx.Response]:
        """Stream a response, bypassing the cache."""
        extensions = _bypass_extensions(kwargs)
        async with super().stream(method, url, extensions=extensions, **kwargs) as response:
            yield response
