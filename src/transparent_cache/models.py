"""Canonical Pydantic models shared across transparent_cache modules.

The models fall into two groups:

**Configuration** -- :class:`CacheConfig`, the explicit per-instance
configuration handed to the store, the validation protocol and the
transport wrappers.  Field aliases accept the historical option names
(``BasePath``, ``MaxAge``, ``Verbose``, ``NoUpdate``) so that existing
configuration files keep working.

**Cache records** -- :class:`CacheEntry` (one persisted response) and
:class:`SweepResult` (what an eviction pass did).
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Response headers stored with an entry and replayed when serving from cache.
PRESERVED_HEADERS: tuple[str, ...] = (
    "Content-Type",
    "Content-Encoding",
    "Content-Length",
    "Content-Range",
    "Last-Modified",
)

CACHEABLE_STATUSES: frozenset[int] = frozenset({200, 206})

DEFAULT_MAX_AGE_HOURS = 8 * 24


# --- Configuration ---


class CacheConfig(BaseModel):
    """Configuration of a single cache instance.

    Example::

        CacheConfig(base_path="/tmp/cache", no_update=15 * 60)
        CacheConfig.model_validate({"BasePath": "/tmp/cache", "MaxAge": 48})
    """

    model_config = ConfigDict(populate_by_name=True)

    base_path: Path = Field(
        alias="BasePath",
        description="Directory holding one file per cache entry (created if absent)",
    )
    max_age: float = Field(
        default=DEFAULT_MAX_AGE_HOURS,
        gt=0,
        alias="MaxAge",
        description="Hours an entry may go unrequested before the sweep deletes it",
    )
    verbose: bool = Field(
        default=False,
        alias="Verbose",
        description="Emit progress diagnostics for every cached request",
    )
    no_update: float = Field(
        default=0,
        ge=0,
        alias="NoUpdate",
        description="Seconds after an origin contact during which the entry is served unchecked",
    )


# --- Cache records ---


class CacheEntry(BaseModel):
    """A persisted response: metadata fields plus the raw body.

    ``last_modified`` lives in :attr:`headers` because the on-disk format
    uses one ``Last-Modified`` line both as the replayed header and as the
    ``If-Modified-Since`` validator.  Metadata keys this version does not
    know about are kept in :attr:`extra` and written back unchanged.
    """

    url: str
    range_spec: str = ""
    status_code: int = 200
    etag: Optional[str] = None
    content_md5: Optional[str] = None
    headers: dict[str, str] = Field(default_factory=dict)
    last_updated: Optional[int] = None
    extra: dict[str, str] = Field(default_factory=dict)
    body: bytes = b""

    @property
    def last_modified(self) -> Optional[str]:
        """The ``Last-Modified`` validator, if the origin sent one."""
        return self.headers.get("Last-Modified")


class SweepResult(BaseModel):
    """Outcome of one eviction pass over a cache directory."""

    removed: list[str] = Field(default_factory=list)
    kept: int = 0
    unknown: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)


class CacheStats(BaseModel):
    """Summary of a cache directory's contents."""

    directory: str
    entries: int = 0
    unknown: int = 0
    total_bytes: int = 0
