"""Fetch command -- download a URL through the cache.

The body goes to stdout untouched; whether it came from the cache, was
confirmed unchanged, or was downloaded is reported on stderr.  The eviction
sweep runs when the command finishes, as it would at the end of any
program using :class:`~transparent_cache.client.CachedClient`.
"""

from __future__ import annotations

from typing import Optional

import httpx
import typer

from transparent_cache.client import CachedClient
from transparent_cache.commands.config import config_from_context
from transparent_cache.exceptions import ConnectionError_, InvalidUsageError
from transparent_cache.exit_codes import EXIT_GENERIC_FAILURE
from transparent_cache.output import debug, info, print_bytes, print_data, warning


def _parse_headers(values: list[str]) -> dict[str, str]:
    """Parse ``Name: value`` strings from repeated ``--header`` options."""
    headers: dict[str, str] = {}
    for raw in values:
        name, sep, value = raw.partition(":")
        if not sep or not name.strip():
            raise InvalidUsageError(f"Invalid header {raw!r}, expected 'Name: value'")
        headers[name.strip()] = value.strip()
    return headers


def _describe_status(response: httpx.Response) -> str:
    if response.headers.get("X-Cached") == "1":
        return "served from cache"
    if response.headers.get("X-Content-Unchanged") == "1":
        return "downloaded, content unchanged"
    return "downloaded"


def fetch_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="Absolute URL to GET."),
    range_spec: Optional[str] = typer.Option(
        None, "--range", "-r", help="Range header value, e.g. 'bytes=0-99'."
    ),
    header: list[str] = typer.Option(
        [], "--header", "-H", help="Extra request header 'Name: value' (repeatable)."
    ),
    include: bool = typer.Option(
        False, "--include", "-i", help="Print the status line and headers before the body."
    ),
    timeout: float = typer.Option(30.0, "--timeout", help="Request timeout in seconds."),
) -> None:
    """Fetch a URL through the cache and write the body to stdout.

    Example::

        transparent-cache fetch http://example.test/a > a.html
        transparent-cache --no-update 900 fetch http://example.test/a -i

    Raises:
        ConnectionError_: On network errors.
        typer.Exit: With code 1 when the server answers with an error status.
    """
    config = config_from_context(ctx)
    headers = _parse_headers(header)
    if range_spec:
        headers["Range"] = range_spec

    with CachedClient(config, timeout=timeout, follow_redirects=True) as client:
        try:
            response = client.get(url, headers=headers)
        except httpx.TransportError as exc:
            raise ConnectionError_(f"Request to {url} failed: {exc}") from exc

    debug(f"{response.status_code} {url}")
    if include:
        print_data(f"HTTP/1.1 {response.status_code} {response.reason_phrase}")
        for name, value in response.headers.items():
            print_data(f"{name}: {value}")
        print_data("")
    print_bytes(response.content)

    if response.is_error:
        warning(f"{url} returned HTTP {response.status_code}")
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)
    info(f"{url}: {_describe_status(response)}")
