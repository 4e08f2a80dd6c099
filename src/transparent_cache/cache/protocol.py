"""Freshness and validation protocol.

This is the decision logic run for every cacheable GET request.  It is
split in two halves so that the sync and async transports can share it:

1. :meth:`ValidationProtocol.prepare` looks the request up in the store and
   either answers it outright (inside the no-update window) or attaches
   ``If-Modified-Since`` / ``If-None-Match`` validators from the stored
   entry.
2. :meth:`ValidationProtocol.resolve` reconciles the origin's answer with
   the stored entry: a 304 is answered from the entry and refreshes its
   ``last_updated`` stamp, a 200/206 replaces the entry, anything else is
   passed through and leaves the store alone.

Responses produced from the store carry ``X-Cached: 1`` and
``X-Content-Unchanged: 1``.  A freshly fetched body whose MD5 matches the
stored one carries ``X-Content-Unchanged: 1`` only.

Example::

    protocol = ValidationProtocol(CacheConfig(base_path="/tmp/cache"))
    if protocol.is_cacheable(request):
        lookup = protocol.prepare(request)
        if lookup.response is None:
            response = transport.handle_request(request)
            ...
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from transparent_cache.cache.keys import content_digest, derive_key
from transparent_cache.cache.store import EntryStore
from transparent_cache.models import (
    CACHEABLE_STATUSES,
    PRESERVED_HEADERS,
    CacheConfig,
    CacheEntry,
)
from transparent_cache.output import info, warning

BYPASS_EXTENSION = "transparent_cache.bypass"
"""Request extension that routes a request around the cache (set for streamed delivery)."""

X_CACHED = "X-Cached"
X_CONTENT_UNCHANGED = "X-Content-Unchanged"

_CONDITIONAL_HEADERS = ("If-Modified-Since", "If-None-Match")
_KEPT_EXTENSIONS = ("http_version", "reason_phrase")


@dataclass
class Lookup:
    """State carried from :meth:`ValidationProtocol.prepare` to :meth:`ValidationProtocol.resolve`.

    Attributes:
        key: The request's cache key.
        url: The request URL as a string.
        range_spec: The request's ``Range`` header, ``""`` when absent.
        entry: The stored entry, only when it belongs to this URL and range.
        response: A response served from the store without contacting the
            origin; when set the request is already answered.
    """

    key: str
    url: str
    range_spec: str
    entry: Optional[CacheEntry] = None
    response: Optional[httpx.Response] = None


class ValidationProtocol:
    """Cache decision logic bound to one configuration and one store.

    Args:
        config: The cache configuration.
        store: The entry store.  Defaults to an :class:`EntryStore` on
            ``config.base_path`` (which creates the directory).
        clock: Wall-clock source in seconds since the epoch.
    """

    def __init__(
        self,
        config: CacheConfig,
        store: Optional[EntryStore] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._store = store or EntryStore(config.base_path)
        self._clock = clock

    @property
    def config(self) -> CacheConfig:
        return self._config

    @property
    def store(self) -> EntryStore:
        return self._store

    # ------------------------------------------------------------------ #
    # Request side
    # ------------------------------------------------------------------ #

    def is_cacheable(self, request: httpx.Request) -> bool:
        """Whether *request* may go through the cache at all.

        Only plain GETs qualify.  Requests that already carry conditional
        headers, or that were marked with :data:`BYPASS_EXTENSION`, are
        forwarded untouched and their responses are never stored.
        """
        if request.method != "GET":
            return False
        if request.extensions.get(BYPASS_EXTENSION):
            return False
        return not any(name in request.headers for name in _CONDITIONAL_HEADERS)

    def prepare(self, request: httpx.Request) -> Lookup:
        """Look *request* up and make it conditional when possible.

        Adds ``If-Modified-Since`` and ``If-None-Match`` to ``request.headers``
        when a matching entry holds those validators.  When the entry was
        confirmed by the origin less than ``no_update`` seconds ago the
        returned lookup already holds the response and the origin must not
        be contacted.
        """
        url = str(request.url)
        range_spec = request.headers.get("Range", "")
        lookup = Lookup(key=derive_key(url, range_spec), url=url, range_spec=range_spec)
        self._progress(f"Fetching {url}")

        stored = self._store.read(lookup.key)
        if stored is None:
            return lookup

        if stored.url != url:
            warning(f"Cache collision: {url} and {stored.url} have the same md5sum")
            return lookup

        if stored.range_spec != range_spec:
            return lookup

        lookup.entry = stored
        if self._within_no_update_window(stored):
            self._progress(f"{url} from cache without checking with server.")
            lookup.response = self.reconstitute(lookup.key, stored)
            return lookup

        if stored.last_modified is not None:
            request.headers["If-Modified-Since"] = stored.last_modified
        if stored.etag is not None:
            request.headers["If-None-Match"] = stored.etag
        return lookup

    # ------------------------------------------------------------------ #
    # Response side
    # ------------------------------------------------------------------ #

    def needs_body(self, lookup: Lookup, response: httpx.Response) -> bool:
        """Whether the transport must buffer *response* and call :meth:`resolve`.

        Statuses the cache does not handle are returned to the caller as-is,
        still streaming.
        """
        if response.status_code in CACHEABLE_STATUSES:
            return True
        return response.status_code == httpx.codes.NOT_MODIFIED and lookup.entry is not None

    def resolve(
        self,
        lookup: Lookup,
        request: httpx.Request,
        response: httpx.Response,
        body: bytes,
    ) -> httpx.Response:
        """Reconcile the origin's *response* with the stored entry.

        Args:
            lookup: The result of :meth:`prepare` for *request*.
            request: The request as sent to the origin.
            response: The origin's response; its stream is already consumed.
            body: The raw (still content-encoded) body bytes.

        Returns:
            The response to hand back to the caller.

        Raises:
            CacheWriteError: If the entry cannot be written.
        """
        stored = lookup.entry
        if response.status_code == httpx.codes.NOT_MODIFIED and stored is not None:
            return self._not_modified(lookup, stored, response)

        if response.status_code not in CACHEABLE_STATUSES:
            return response

        digest = content_digest(body)
        headers = httpx.Headers(response.headers)
        unchanged = stored is not None and stored.content_md5 == digest
        if unchanged:
            headers[X_CONTENT_UNCHANGED] = "1"
        self._progress(f"{lookup.url}{' unchanged' if unchanged else ''} from server.")

        entry = CacheEntry(
            url=lookup.url,
            range_spec=lookup.range_spec,
            status_code=response.status_code,
            etag=response.headers.get("ETag"),
            content_md5=digest,
            headers={
                name: response.headers[name]
                for name in PRESERVED_HEADERS
                if name in response.headers
            },
            last_updated=int(self._clock()),
            body=body,
        )
        self._store.write(lookup.key, entry)

        return httpx.Response(
            status_code=response.status_code,
            headers=headers,
            content=body,
            request=request,
            extensions=_kept_extensions(response),
        )

    def reconstitute(self, key: str, entry: CacheEntry) -> httpx.Response:
        """Build a response from a stored entry and record the access.

        The status defaults to 200 for entries written without one.  Only
        the preserved headers are replayed, plus ``X-Cached`` and
        ``X-Content-Unchanged``.  The entry file's mtime is bumped so the
        eviction sweep sees the entry as recently used.
        """
        headers = [
            (name, entry.headers[name]) for name in PRESERVED_HEADERS if name in entry.headers
        ]
        headers.append((X_CACHED, "1"))
        headers.append((X_CONTENT_UNCHANGED, "1"))
        response = httpx.Response(
            status_code=entry.status_code or httpx.codes.OK,
            headers=headers,
            content=entry.body,
        )
        self._store.touch(key)
        return response

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _not_modified(
        self, lookup: Lookup, entry: CacheEntry, response: httpx.Response
    ) -> httpx.Response:
        self._progress(f"{lookup.url} from cache.")
        cached = self.reconstitute(lookup.key, entry)

        headers = dict(entry.headers)
        if "Last-Modified" in response.headers:
            headers["Last-Modified"] = response.headers["Last-Modified"]
        refreshed = entry.model_copy(
            update={
                "etag": response.headers.get("ETag", entry.etag),
                "headers": headers,
                "last_updated": int(self._clock()),
            }
        )
        self._store.write(lookup.key, refreshed)
        return cached

    def _within_no_update_window(self, entry: CacheEntry) -> bool:
        if self._config.no_update <= 0 or entry.last_updated is None:
            return False
        return self._clock() - entry.last_updated < self._config.no_update

    def _progress(self, message: str) -> None:
        if self._config.verbose:
            info(message)


def _kept_extensions(response: httpx.Response) -> dict:
    return {name: response.extensions[name] for name in _KEPT_EXTENSIONS if name in response.extensions}
