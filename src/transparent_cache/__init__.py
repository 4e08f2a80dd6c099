"""transparent_cache -- a transparent, persistent disk cache for HTTP GET requests.

Responses are stored one file per URL (plus byte range) and revalidated
with ``If-Modified-Since`` / ``If-None-Match`` before reuse, so a program
that fetches the same pages repeatedly only downloads what has changed.
The cache plugs into :mod:`httpx` as a transport wrapper::

    from transparent_cache import CacheConfig, CachedClient

    with CachedClient(CacheConfig(base_path="/tmp/cache")) as client:
        client.get("http://www.example.com/")

Modules:
    cache: Key derivation, entry codec, store, validation protocol, eviction.
    client: httpx transport wrappers and ready-made cached clients.
    models: Pydantic models (configuration, entries, sweep results).
    config: XDG paths, config files, environment, precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr diagnostics with Rich support.
    app: Typer CLI entry point.
"""

__version__ = "0.7.0"

from transparent_cache.client import (  # noqa: E402
    AsyncCachedClient,
    AsyncCachingTransport,
    CachedClient,
    CachingTransport,
)
from transparent_cache.models import CacheConfig, CacheEntry  # noqa: E402

__all__ = [
    "AsyncCachedClient",
    "AsyncCachingTransport",
    "CacheConfig",
    "CacheEntry",
    "CachedClient",
    "CachingTransport",
    "__version__",
]
