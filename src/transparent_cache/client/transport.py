"""httpx transport wrappers that put the disk cache in front of another transport.

:class:`CachingTransport` and :class:`AsyncCachingTransport` implement the
same interface as the transport they wrap, so the cache is enabled by
composition at the call site::

    transport = CachingTransport(config, inner=httpx.HTTPTransport(retries=2))
    with httpx.Client(transport=transport) as client:
        client.get("https://example.com/")

Only buffered GET requests enter the cache.  Everything else, including
responses the cache has no business with (errors, redirects), is forwarded
without being read, so streaming semantics are preserved for those.

See Also:
    :class:`~transparent_cache.cache.protocol.ValidationProtocol` for the
    decision logic both wrappers share.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

import httpx
from anyio import to_thread

from transparent_cache.cache.eviction import sweep
from transparent_cache.cache.protocol import ValidationProtocol
from transparent_cache.cache.store import EntryStore
from transparent_cache.models import CacheConfig, SweepResult


class _CachingTransportBase:
    """Configuration and eviction shared by the sync and async wrappers."""

    def __init__(
        self,
        config: CacheConfig,
        store: Optional[EntryStore] = None,
        clock: Callable[[], float] = time.time,
        sweep_on_close: bool = False,
    ) -> None:
        self._protocol = ValidationProtocol(config, store=store, clock=clock)
        self._clock = clock
        self._sweep_on_close = sweep_on_close
        self._closed = False
        self.last_sweep: Optional[SweepResult] = None

    @property
    def protocol(self) -> ValidationProtocol:
        return self._protocol

    @property
    def config(self) -> CacheConfig:
        return self._protocol.config

    @property
    def store(self) -> EntryStore:
        return self._protocol.store

    def sweep(self) -> SweepResult:
        """Run the eviction sweep over this transport's cache directory."""
        return sweep(
            self.store,
            self.config.max_age,
            now=self._clock(),
            verbose=self.config.verbose,
        )

    def _finish(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._sweep_on_close:
            self.last_sweep = self.sweep()


class CachingTransport(_CachingTransportBase, httpx.BaseTransport):
    """Synchronous caching wrapper around an :class:`httpx.BaseTransport`.

    Args:
        config: Cache configuration.
        inner: The transport that performs network I/O.  Defaults to a new
            :class:`httpx.HTTPTransport`.
        store: Optional pre-built entry store (defaults to one on
            ``config.base_path``).
        clock: Wall-clock source, injectable for tests.
        sweep_on_close: Run the eviction sweep when the transport is
            closed; the result is kept in :attr:`last_sweep`.

    Raises:
        CacheDirectoryError: If the cache directory cannot be created.
    """

    def __init__(
        self,
        config: CacheConfig,
        inner: Optional[httpx.BaseTransport] = None,
        store: Optional[EntryStore] = None,
        clock: Callable[[], float] = time.time,
        sweep_on_close: bool = False,
    ) -> None:
        super().__init__(config, store=store, clock=clock, sweep_on_close=sweep_on_close)
        self._inner = inner or httpx.HTTPTransport()

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        protocol = self._protocol
        if not protocol.is_cacheable(request):
            return self._inner.handle_request(request)

        lookup = protocol.prepare(request)
        if lookup.response is not None:
            return lookup.response

        response = self._inner.handle_request(request)
        if not protocol.needs_body(lookup, response):
            return response

        body = _read_raw(response)
        return protocol.resolve(lookup, request, response, body)

    def close(self) -> None:
        self._inner.close()
        self._finish()


class AsyncCachingTransport(_CachingTransportBase, httpx.AsyncBaseTransport):
    """Asynchronous counterpart of :class:`CachingTransport`.

    Store lookups, entry writes and the closing sweep run in a worker thread
    via :func:`anyio.to_thread.run_sync`, so file I/O and ``fsync`` never
    block the event loop.
    """

    def __init__(
        self,
        config: CacheConfig,
        inner: Optional[httpx.AsyncBaseTransport] = None,
        store: Optional[EntryStore] = None,
        clock: Callable[[], float] = time.time,
        sweep_on_close: bool = False,
    ) -> None:
        super().__init__(config, store=store, clock=clock, sweep_on_close=sweep_on_close)
        self._inner = inner or httpx.AsyncHTTPTransport()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        protocol = self._protocol
        if not protocol.is_cacheable(request):
            return await self._inner.handle_async_request(request)

        lookup = await to_thread.run_sync(protocol.prepare, request)
        if lookup.response is not None:
            return lookup.response

        response = await self._inner.handle_async_request(request)
        if not protocol.needs_body(lookup, response):
            return response

        body = await _aread_raw(response)
        return await to_thread.run_sync(protocol.resolve, lookup, request, response, body)

    async def aclose(self) -> None:
        await self._inner.aclose()
        await to_thread.run_sync(self._finish)


def _read_raw(response: httpx.Response) -> bytes:
    """Drain *response* without content decoding and close it.

    The stream is iterated directly because responses built from in-memory
    content are already marked as consumed.
    """
    try:
        return b"".join(response.stream)  # type: ignore[arg-type]
    finally:
        response.close()


async def _aread_raw(response: httpx.Response) -> bytes:
    try:
        return b"".join([chunk async for chunk in response.stream])  # type: ignore[union-attr]
    finally:
        await response.aclose()
