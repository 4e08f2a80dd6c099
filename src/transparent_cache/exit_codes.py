"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~transparent_cache.exceptions.TransparentCacheError`
subclass.  Shell wrappers can inspect the exit code of
``transparent-cache`` to tell a broken cache directory apart from a network
failure without parsing stderr.

Example::

    $ transparent-cache --base-path /proc/nope fetch http://example.test/
    $ echo $?
    3   # EXIT_CACHE_DIRECTORY -- the cache directory cannot be created
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_CACHE_DIRECTORY = 3
"""The cache directory is missing and could not be created."""

EXIT_CACHE_WRITE = 4
"""A cache entry could not be written."""

EXIT_CORRUPT_ENTRY = 5
"""A cache entry could not be encoded or decoded."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""
