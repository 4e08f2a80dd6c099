"""Typer application and CLI entry point for transparent_cache.

This module wires together the top-level Typer application and registers the
built-in sub-commands (``fetch``, ``key``, ``show``, ``stats``, ``sweep``,
``config``).  Global options carry the cache configuration overrides; every
sub-command resolves the effective
:class:`~transparent_cache.models.CacheConfig` from them via
:func:`~transparent_cache.config.resolve_config`.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``.  It installs signal handlers and invokes the Typer app.
:class:`~transparent_cache.exceptions.TransparentCacheError` instances exit
with their mapped code; unexpected exceptions are written to a crash log
under the data directory.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer

from transparent_cache import __version__
from transparent_cache.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="transparent-cache",
    help="Fetch URLs through a persistent, revalidating HTTP disk cache.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"transparent-cache {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="JSON config file (default: user config dir)."
    ),
    base_path: Optional[Path] = typer.Option(
        None, "--base-path", "-d", help="Cache directory."
    ),
    max_age: Optional[float] = typer.Option(
        None, "--max-age", help="Hours an unused entry is kept before eviction."
    ),
    no_update: Optional[float] = typer.Option(
        None, "--no-update", help="Seconds a validated entry is served without asking the server."
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Report cache decisions and evictions."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~transparent_cache.output.OutputManager`
    and stores the configuration overrides in ``ctx.obj`` for the
    sub-commands.
    """
    from transparent_cache.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["overrides"] = {
        "base_path": base_path,
        "max_age": max_age,
        "no_update": no_update,
        "verbose": True if verbose else None,
    }


# ------------------------------------------------------------------ #
# Sub-commands
# ------------------------------------------------------------------ #

from transparent_cache.commands.config import config_app  # noqa: E402
from transparent_cache.commands.entries import (  # noqa: E402
    key_command,
    show_command,
    stats_command,
    sweep_command,
)
from transparent_cache.commands.fetch import fetch_command  # noqa: E402

app.command("fetch")(fetch_command)
app.command("key")(key_command)
app.command("show")(show_command)
app.command("stats")(stats_command)
app.command("sweep")(sweep_command)
app.add_typer(config_app, name="config", help="Show or save the effective configuration.")


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from transparent_cache.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``transparent-cache`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from transparent_cache.exceptions import TransparentCacheError
        from transparent_cache.output import error

        if isinstance(exc, TransparentCacheError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
