"""Entry store: one file per cache key inside a single directory.

The store is the only code that touches entry files.  Reads are plain
open-then-read snapshots; writes go through
:func:`~transparent_cache.config.atomic_write_bytes`, so a concurrent reader
sees either the previous entry or the new one, never a mix.  No locks are
taken: two writers racing on the same key both succeed and the last rename
wins.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator, Optional

from transparent_cache.cache.codec import decode_entry, encode_entry
from transparent_cache.cache.keys import is_entry_filename
from transparent_cache.config import atomic_write_bytes
from transparent_cache.exceptions import CacheDirectoryError, CacheWriteError, EntryFormatError
from transparent_cache.models import CacheEntry, CacheStats
from transparent_cache.output import debug


class EntryStore:
    """Read, write, and touch entry files under *base_path*.

    Args:
        base_path: The cache directory.  Created (with parents) if absent.

    Raises:
        CacheDirectoryError: If *base_path* is not a directory and cannot be
            created.
    """

    def __init__(self, base_path: str | Path) -> None:
        self._base_path = Path(base_path)
        try:
            self._base_path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheDirectoryError(
                f"{self._base_path} is not a directory and cannot be created: {exc}"
            ) from exc

    @property
    def base_path(self) -> Path:
        """The cache directory."""
        return self._base_path

    def path_for(self, key: str) -> Path:
        """Return the entry file path for *key*."""
        return self._base_path / key

    def read(self, key: str) -> Optional[CacheEntry]:
        """Load the entry stored under *key*.

        Returns:
            The decoded entry, or ``None`` when the file is missing, empty,
            unreadable, or corrupt.  Errors are reported as debug
            diagnostics and never raised.
        """
        path = self.path_for(key)
        try:
            with open(path, "rb") as fh:
                data = fh.read()
        except FileNotFoundError:
            return None
        except OSError as exc:
            debug(f"Cannot read cache entry {path}: {exc}")
            return None

        if not data:
            return None
        try:
            return decode_entry(data)
        except EntryFormatError as exc:
            debug(f"Ignoring corrupt cache entry {path}: {exc}")
            return None

    def write(self, key: str, entry: CacheEntry) -> None:
        """Replace the entry stored under *key* with *entry*.

        Raises:
            CacheWriteError: If the entry cannot be encoded or the file
                cannot be written.  The previous file is left untouched.
        """
        path = self.path_for(key)
        try:
            data = encode_entry(entry)
        except EntryFormatError as exc:
            raise CacheWriteError(f"Cannot encode cache entry for {entry.url}: {exc}") from exc
        try:
            atomic_write_bytes(path, data)
        except OSError as exc:
            raise CacheWriteError(f"Failed to write cache entry {path}: {exc}") from exc

    def touch(self, key: str) -> None:
        """Record an access by setting the entry file's mtime to now.

        A file deleted since it was read is ignored.
        """
        try:
            os.utime(self.path_for(key), None)
        except FileNotFoundError:
            pass

    def iter_files(self) -> Iterator[os.DirEntry[str]]:
        """Yield every regular file directly inside the cache directory."""
        with os.scandir(self._base_path) as it:
            for item in it:
                if item.is_file(follow_symlinks=False):
                    yield item

    def stats(self) -> CacheStats:
        """Count entries, unrecognised files, and bytes used."""
        result = CacheStats(directory=str(self._base_path))
        for item in self.iter_files():
            try:
                size = item.stat(follow_symlinks=False).st_size
            except FileNotFoundError:
                continue
            if is_entry_filename(item.name):
                result.entries += 1
                result.total_bytes += size
            else:
                result.unknown += 1
        return result
