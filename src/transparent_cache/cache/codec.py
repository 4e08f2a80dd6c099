"""Entry codec: the on-disk byte format of a cache entry.

An entry file is a block of metadata lines followed by the raw body::

    Code 200
    Content-Type text/html
    ETag "v1"
    MD5 5d41402abc4b2a76b9719d911017c592
    Url http://example.test/a
    X-HCT-LastUpdated 1700000000

    <body bytes, unencoded, up to EOF>

Lines are ``KEY value`` pairs sorted by key and terminated by a single
blank line.  Values cannot contain line breaks; nothing is escaped.  The
format is shared with existing caches, so key names and ordering must not
change.
"""

from __future__ import annotations

import re
from typing import Any

from transparent_cache.exceptions import EntryFormatError
from transparent_cache.models import PRESERVED_HEADERS, CacheEntry

URL_KEY = "Url"
RANGE_KEY = "Range"
CODE_KEY = "Code"
ETAG_KEY = "ETag"
MD5_KEY = "MD5"
LAST_UPDATED_KEY = "X-HCT-LastUpdated"

_META_LINE_RE = re.compile(r"(\S+)\s+(.*)", re.DOTALL)
_RESERVED_KEYS = frozenset(
    {URL_KEY, RANGE_KEY, CODE_KEY, ETAG_KEY, MD5_KEY, LAST_UPDATED_KEY, *PRESERVED_HEADERS}
)
_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


def encode_entry(entry: CacheEntry) -> bytes:
    """Serialise *entry* to the on-disk byte format.

    Raises:
        EntryFormatError: If a metadata key or value contains a line break,
            a value starts with whitespace, a key is empty or contains
            whitespace, a header is not one of the preserved headers, or an
            extra key shadows a field.  These would not decode back to the
            same entry.
    """
    unlisted = sorted(set(entry.headers) - set(PRESERVED_HEADERS))
    if unlisted:
        raise EntryFormatError(f"Headers cannot be stored: {', '.join(unlisted)}")
    shadowing = sorted(_RESERVED_KEYS.intersection(entry.extra))
    if shadowing:
        raise EntryFormatError(f"Extra keys shadow entry fields: {', '.join(shadowing)}")

    meta: dict[str, str] = dict(entry.extra)
    for name in PRESERVED_HEADERS:
        value = entry.headers.get(name)
        if value is not None:
            meta[name] = value
    meta[URL_KEY] = entry.url
    meta[CODE_KEY] = str(entry.status_code)
    if entry.range_spec:
        meta[RANGE_KEY] = entry.range_spec
    if entry.etag is not None:
        meta[ETAG_KEY] = entry.etag
    if entry.content_md5 is not None:
        meta[MD5_KEY] = entry.content_md5
    if entry.last_updated is not None:
        meta[LAST_UPDATED_KEY] = str(entry.last_updated)

    lines: list[str] = []
    for key in sorted(meta):
        value = meta[key]
        if not key or any(ch.isspace() for ch in key):
            raise EntryFormatError(f"Invalid metadata key {key!r}")
        if "\n" in value or "\r" in value:
            raise EntryFormatError(f"Metadata value for {key} contains a line break")
        if value[:1].isspace():
            raise EntryFormatError(f"Metadata value for {key} starts with whitespace")
        lines.append(f"{key} {value}\n")
    lines.append("\n")
    return "".join(lines).encode(_ENCODING, _ERRORS) + entry.body


def decode_entry(data: bytes) -> CacheEntry:
    """Parse the on-disk byte format back into a :class:`CacheEntry`.

    Unknown metadata keys are kept in ``extra``.  Optional fields that are
    absent decode as ``None``; a missing ``Code`` decodes as 200, matching
    entries written before the status was recorded.

    Raises:
        EntryFormatError: If the metadata block is not terminated by a blank
            line, a line is not a ``KEY value`` pair, ``Url`` is missing, or
            a numeric field does not parse.
    """
    meta, body = _split_metadata(data)

    url = meta.pop(URL_KEY, None)
    if url is None:
        raise EntryFormatError("Entry has no Url field")

    fields: dict[str, Any] = {
        "url": url,
        "range_spec": meta.pop(RANGE_KEY, ""),
        "etag": meta.pop(ETAG_KEY, None),
        "content_md5": meta.pop(MD5_KEY, None),
        "body": body,
    }

    code = meta.pop(CODE_KEY, None)
    if code is not None:
        fields["status_code"] = _parse_int(CODE_KEY, code)
    last_updated = meta.pop(LAST_UPDATED_KEY, None)
    if last_updated is not None:
        fields["last_updated"] = _parse_int(LAST_UPDATED_KEY, last_updated)

    headers = {name: meta.pop(name) for name in PRESERVED_HEADERS if name in meta}
    fields["headers"] = headers
    fields["extra"] = meta
    return CacheEntry(**fields)


def _split_metadata(data: bytes) -> tuple[dict[str, str], bytes]:
    """Read ``KEY value`` lines up to the blank separator line."""
    meta: dict[str, str] = {}
    pos = 0
    while True:
        end = data.find(b"\n", pos)
        if end < 0:
            raise EntryFormatError("Unexpected end of data in entry metadata")
        line = data[pos:end].rstrip(b"\r").decode(_ENCODING, _ERRORS)
        pos = end + 1
        if not line:
            return meta, data[pos:]
        match = _META_LINE_RE.fullmatch(line)
        if match is None:
            raise EntryFormatError(f"Malformed metadata line {line!r}")
        meta[match.group(1)] = match.group(2)


def _parse_int(key: str, value: str) -> int:
    try:
        return int(float(value))
    except (ValueError, OverflowError) as exc:
        raise EntryFormatError(f"Invalid {key} value {value!r}") from exc
