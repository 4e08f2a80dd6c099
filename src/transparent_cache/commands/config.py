"""Config commands -- view and persist the effective cache configuration.

Provides the ``transparent-cache config`` sub-command group, plus
:func:`config_from_context`, which every sub-command uses to turn the global
CLI options into a :class:`~transparent_cache.models.CacheConfig`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from transparent_cache.models import CacheConfig
from transparent_cache.output import format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


def config_from_context(ctx: typer.Context) -> CacheConfig:
    """Resolve the effective configuration from the root callback's options.

    Raises:
        ConfigError: If the merged configuration is invalid.
    """
    from transparent_cache.config import resolve_config

    obj = ctx.obj or {}
    return resolve_config(obj.get("overrides"), obj.get("config_path"))


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration.

    Merges CLI options, ``TRANSPARENT_CACHE_*`` environment variables, and
    the config file, then prints the result.

    Example::

        transparent-cache config show
        transparent-cache --no-update 900 config show --json
    """
    from transparent_cache.config import default_config_path

    config = config_from_context(ctx)
    config_path = (ctx.obj or {}).get("config_path") or default_config_path()
    info(f"Config file: {config_path}")
    format_response(config.model_dump(mode="json"))


@config_app.command("save")
def config_save(
    ctx: typer.Context,
    path: Optional[Path] = typer.Argument(
        None, help="Destination file (default: the --config file or user config file)."
    ),
) -> None:
    """Persist the effective configuration as a JSON config file.

    Example::

        transparent-cache --base-path /var/cache/http --max-age 48 config save
    """
    from transparent_cache.config import save_config

    config = config_from_context(ctx)
    target = path or (ctx.obj or {}).get("config_path")
    written = save_config(config, target)
    success(f"Saved configuration to {written}")
