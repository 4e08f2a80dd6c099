"""Built-in CLI sub-commands for transparent_cache.

* :mod:`~transparent_cache.commands.fetch` -- fetch a URL through the cache.
* :mod:`~transparent_cache.commands.entries` -- inspect, count, and sweep
  cache entries (``key``, ``show``, ``stats``, ``sweep``).
* :mod:`~transparent_cache.commands.config` -- show or save the effective
  configuration.

Single commands are plain callbacks registered on the root app; the
``config`` group is a :class:`typer.Typer` sub-application.
"""
