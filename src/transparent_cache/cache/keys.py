"""Cache key derivation.

A cache key is the lowercase hex MD5 of the request URL, with the ``Range``
header value folded in when the request carries one.  The key doubles as the
entry's file name, so :data:`HASH_FILENAME_RE` is also what the eviction
sweep uses to tell entry files apart from anything else in the directory.
"""

from __future__ import annotations

import hashlib
import re
from typing import Optional

HASH_FILENAME_RE = re.compile(r"^[0-9a-f]{32}$")


def derive_key(url: str, range_spec: Optional[str] = None) -> str:
    """Return the 32-character cache key for *url* and an optional byte range.

    Args:
        url: The absolute request URL, exactly as sent.
        range_spec: The request's ``Range`` header value.  ``None`` and the
            empty string both mean "no range".

    Returns:
        Lowercase hex MD5 digest.
    """
    material = url if not range_spec else f"{url}\n{range_spec}"
    return hashlib.md5(material.encode("utf-8")).hexdigest()


def content_digest(body: bytes) -> str:
    """Hex MD5 of a response body, as stored in an entry's ``MD5`` field."""
    return hashlib.md5(body).hexdigest()


def is_entry_filename(name: str) -> bool:
    """Whether *name* looks like a cache entry file."""
    return HASH_FILENAME_RE.fullmatch(name) is not None
