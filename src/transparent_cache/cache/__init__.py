"""Disk cache core for transparent_cache.

* :mod:`~transparent_cache.cache.keys` -- cache key derivation.
* :mod:`~transparent_cache.cache.codec` -- entry file byte format.
* :mod:`~transparent_cache.cache.store` -- atomic read/write of entry files.
* :mod:`~transparent_cache.cache.protocol` -- freshness and validation logic.
* :mod:`~transparent_cache.cache.eviction` -- removal of unused entries.

The cache is consumed by the transport wrappers in
:mod:`transparent_cache.client` and configured by
:class:`~transparent_cache.models.CacheConfig`.
"""

from transparent_cache.cache.codec import decode_entry, encode_entry
from transparent_cache.cache.eviction import sweep
from transparent_cache.cache.keys import derive_key
from transparent_cache.cache.protocol import BYPASS_EXTENSION, ValidationProtocol
from transparent_cache.cache.store import EntryStore

__all__ = [
    "BYPASS_EXTENSION",
    "EntryStore",
    "ValidationProtocol",
    "decode_entry",
    "derive_key",
    "encode_entry",
    "sweep",
]
