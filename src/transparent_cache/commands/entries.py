"""Entry commands -- look inside and maintain a cache directory.

``key`` prints the file name a URL maps to, ``show`` prints an entry's
metadata, ``stats`` summarises the directory, and ``sweep`` runs the
eviction pass on demand.  None of these contact the network, and ``show``
deliberately does not bump the entry's access time.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

import httpx
import typer

from transparent_cache.cache.eviction import sweep
from transparent_cache.cache.keys import derive_key
from transparent_cache.cache.store import EntryStore
from transparent_cache.commands.config import config_from_context
from transparent_cache.exceptions import InvalidUsageError
from transparent_cache.exit_codes import EXIT_GENERIC_FAILURE
from transparent_cache.models import CacheEntry
from transparent_cache.output import error, format_response, info, print_data, success


def key_command(
    url: str = typer.Argument(help="Absolute request URL."),
    range_spec: Optional[str] = typer.Option(
        None, "--range", "-r", help="Range header value, e.g. 'bytes=0-99'."
    ),
) -> None:
    """Print the cache key (entry file name) for a URL.

    The URL is normalised the way httpx sends it (lower-case host, default
    port dropped, unsafe characters percent-encoded) before hashing.

    Example::

        transparent-cache key http://example.test/a
        transparent-cache key http://example.test/a --range bytes=0-99
    """
    print_data(derive_key(_normalize(url), range_spec))


def show_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="Absolute request URL."),
    range_spec: Optional[str] = typer.Option(
        None, "--range", "-r", help="Range header value used when the entry was fetched."
    ),
) -> None:
    """Show the metadata stored for a URL (the body is not printed).

    Raises:
        typer.Exit: With code 1 when no readable entry exists.
    """
    config = config_from_context(ctx)
    store = EntryStore(config.base_path)
    url = _normalize(url)
    key = derive_key(url, range_spec)
    entry = store.read(key)
    if entry is None:
        error(f"No cache entry for {url}")
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)
    if entry.url != url:
        info(f"Entry {key} belongs to {entry.url} (hash collision)")
    format_response(_describe(key, store, entry))


def stats_command(ctx: typer.Context) -> None:
    """Summarise the cache directory: entries, unknown files, bytes used."""
    config = config_from_context(ctx)
    store = EntryStore(config.base_path)
    format_response(store.stats().model_dump())


def sweep_command(
    ctx: typer.Context,
    max_age: Optional[float] = typer.Option(
        None, "--max-age", help="Override the configured maximum age in hours."
    ),
) -> None:
    """Delete entries not used within the maximum age.

    Files whose names are not cache keys are reported and left in place.

    Example::

        transparent-cache sweep
        transparent-cache sweep --max-age 24 --json
    """
    config = config_from_context(ctx)
    store = EntryStore(config.base_path)
    hours = config.max_age if max_age is None else max_age
    result = sweep(store, hours, verbose=config.verbose)
    success(f"Removed {len(result.removed)} entries, kept {result.kept}.")
    format_response(result.model_dump())


def _normalize(url: str) -> str:
    """Return *url* as httpx sends it, which is the form cache keys are derived from."""
    try:
        return str(httpx.URL(url))
    except httpx.InvalidURL as exc:
        raise InvalidUsageError(f"Invalid URL {url!r}: {exc}") from exc


def _describe(key: str, store: EntryStore, entry: CacheEntry) -> dict[str, Any]:
    last_updated = None
    if entry.last_updated is not None:
        last_updated = datetime.fromtimestamp(entry.last_updated, tz=timezone.utc).isoformat()
    return {
        "key": key,
        "file": str(store.path_for(key)),
        "url": entry.url,
        "range": entry.range_spec,
        "status_code": entry.status_code,
        "etag": entry.etag,
        "last_modified": entry.last_modified,
        "content_md5": entry.content_md5,
        "last_updated": last_updated,
        "headers": entry.headers,
        "extra": entry.extra,
        "body_bytes": len(entry.body),
    }
