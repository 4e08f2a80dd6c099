"""HTTP client integration for transparent_cache.

Classes:
    :class:`CachingTransport` -- wraps any :class:`httpx.BaseTransport`.
    :class:`AsyncCachingTransport` -- wraps any :class:`httpx.AsyncBaseTransport`.
    :class:`CachedClient` -- :class:`httpx.Client` using :class:`CachingTransport`.
    :class:`AsyncCachedClient` -- :class:`httpx.AsyncClient` using :class:`AsyncCachingTransport`.
"""

from transparent_cache.client.cached_client import AsyncCachedClient, CachedClient
from transparent_cache.client.transport import AsyncCachingTransport, CachingTransport

__all__ = ["AsyncCachedClient", "AsyncCachingTransport", "CachedClient", "CachingTransport"]
