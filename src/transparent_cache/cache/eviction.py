"""Eviction sweep: delete entries that have not been used for ``max_age`` hours.

An entry file's mtime is bumped every time the entry is served or
revalidated, so its age is the time since it was last useful.  Files whose
names are not cache keys are reported and left alone; the directory is
expected to hold only entry files.
"""

from __future__ import annotations

import os
import time
from typing import Optional

from transparent_cache.cache.keys import is_entry_filename
from transparent_cache.cache.store import EntryStore
from transparent_cache.models import SweepResult
from transparent_cache.output import info, warning

SECONDS_PER_HOUR = 3600


def sweep(
    store: EntryStore,
    max_age_hours: float,
    *,
    now: Optional[float] = None,
    verbose: bool = False,
) -> SweepResult:
    """Remove entry files older than *max_age_hours*.

    An entry exactly *max_age_hours* old is kept.  Deletion failures are
    reported and recorded in ``result.failed``; they never raise.  The sweep
    takes no locks, so an entry read concurrently keeps its open handle and
    an entry deleted before a lookup is simply a miss.

    Args:
        store: The store whose directory is swept.
        max_age_hours: Maximum age in hours since last access.
        now: Reference time in seconds since the epoch (defaults to now).
        verbose: Report every deleted file.

    Returns:
        A :class:`~transparent_cache.models.SweepResult`.
    """
    current = time.time() if now is None else now
    result = SweepResult()

    try:
        files = list(store.iter_files())
    except FileNotFoundError:
        return result

    for item in files:
        if not is_entry_filename(item.name):
            warning(f"Unknown file found in cache directory: {item.path}")
            result.unknown.append(item.name)
            continue

        try:
            mtime = item.stat(follow_symlinks=False).st_mtime
        except FileNotFoundError:
            continue

        age_hours = (current - mtime) / SECONDS_PER_HOUR
        if age_hours <= max_age_hours:
            result.kept += 1
            continue

        if verbose:
            info(f"Deleting {item.name}.")
        try:
            os.unlink(item.path)
        except FileNotFoundError:
            continue
        except OSError as exc:
            warning(f"Failed to delete {item.path}: {exc}")
            result.failed.append(item.name)
            continue
        result.removed.append(item.name)

    return result
