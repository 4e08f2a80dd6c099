"""Exception hierarchy for transparent_cache.

All exceptions inherit from :class:`TransparentCacheError`, which carries an
``exit_code`` attribute mapped to a constant from
:mod:`transparent_cache.exit_codes`.  The CLI entry point
:func:`transparent_cache.app.main` catches ``TransparentCacheError`` and exits
with the matching code.

Library callers mostly meet :class:`CacheDirectoryError` (at construction)
and :class:`CacheWriteError` (while a response is being stored).  Corrupt
entries never surface to callers; they are read as cache misses.

Subclass hierarchy::

    TransparentCacheError (exit 1)
    +-- InvalidUsageError    (exit 2)
    +-- ConfigError          (exit 1)
    +-- CacheDirectoryError  (exit 3)
    +-- CacheWriteError      (exit 4)
    +-- EntryFormatError     (exit 5)
    +-- ConnectionError_     (exit 6)
"""

from transparent_cache.exit_codes import (
    EXIT_CACHE_DIRECTORY,
    EXIT_CACHE_WRITE,
    EXIT_CONNECTION_ERROR,
    EXIT_CORRUPT_ENTRY,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
)


class TransparentCacheError(Exception):
    """Base exception for all transparent_cache errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(TransparentCacheError):
    """Raised for invalid CLI arguments (malformed ``--header`` values and the like)."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(TransparentCacheError):
    """Raised for configuration problems (invalid JSON, failed validation, bad env values)."""

    exit_code = EXIT_GENERIC_FAILURE


class CacheDirectoryError(TransparentCacheError):
    """Raised when the cache base directory does not exist and cannot be created."""

    exit_code = EXIT_CACHE_DIRECTORY


class CacheWriteError(TransparentCacheError):
    """Raised when an entry cannot be written or renamed into place.

    The previous entry file, if any, is left untouched.
    """

    exit_code = EXIT_CACHE_WRITE


class EntryFormatError(TransparentCacheError):
    """Raised by the entry codec for truncated metadata or unencodable values."""

    exit_code = EXIT_CORRUPT_ENTRY


class ConnectionError_(TransparentCacheError):
    """Raised by the CLI on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR
