"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for transparent_cache:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.transparent-cache/`` on macOS and Windows.  See
  :func:`get_config_dir`, :func:`get_cache_dir`, :func:`get_data_dir`.
* **Config file** -- a JSON object using either the field names of
  :class:`~transparent_cache.models.CacheConfig` or the historical option
  names (``BasePath``, ``MaxAge``, ``Verbose``, ``NoUpdate``).
* **Environment** -- ``TRANSPARENT_CACHE_*`` variables, so a program can be
  pointed at a cache without changing its code.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, the config file and defaults.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write_bytes`), shared with the entry store.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from transparent_cache.exceptions import ConfigError
from transparent_cache.models import CacheConfig

_APP_NAME = "transparent-cache"
_CONFIG_FILENAME = "config.json"
_ENV_PREFIX = "TRANSPARENT_CACHE_"

# Environment variable suffix -> CacheConfig field name.
_ENV_FIELDS = {
    "BASE_PATH": "base_path",
    "MAX_AGE": "max_age",
    "VERBOSE": "verbose",
    "NO_UPDATE": "no_update",
}

_ALIASES = {
    "BasePath": "base_path",
    "MaxAge": "max_age",
    "Verbose": "verbose",
    "NoUpdate": "no_update",
}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/transparent-cache/``.
    On macOS/Windows: ``~/.transparent-cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the default cache base path used when none is configured.

    Unlike the other directory helpers this one does not create the
    directory: the entry store owns its creation and reports failures as
    :class:`~transparent_cache.exceptions.CacheDirectoryError`.

    On Linux/BSD: ``$XDG_CACHE_HOME/transparent-cache/``.
    On macOS/Windows: ``~/.transparent-cache/cache/``.
    """
    if _is_xdg_platform():
        return _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    return _fallback_base_dir() / "cache"


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/transparent-cache/``.
    On macOS/Windows: ``~/.transparent-cache/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write *data* to *path* atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems.  A reader that
    opened *path* before the rename keeps reading the previous content.  On
    any failure the temp file is removed and *path* is left untouched.

    Raises:
        OSError: If the temp file cannot be created, written, or renamed.
    """
    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            prefix=f"{path.name}.tmp{os.getpid()}.",
            delete=False,
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Config file ---


def default_config_path() -> Path:
    """Path of the user-level config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_config_file(path: Path) -> dict[str, Any]:
    """Load a JSON config file into a dict of :class:`CacheConfig` field names.

    Historical option names are translated to field names.  A missing file
    yields an empty dict.

    Raises:
        ConfigError: If the file is not a JSON object.
    """
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Invalid config file at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config file at {path}: expected a JSON object")
    return {_ALIASES.get(key, key): value for key, value in data.items()}


def save_config(config: CacheConfig, path: Optional[Path] = None) -> Path:
    """Persist *config* atomically as JSON and return the file path."""
    target = path or default_config_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="json")
    atomic_write_bytes(target, (json.dumps(data, indent=2) + "\n").encode("utf-8"))
    return target


# --- Environment ---


def config_from_env(environ: Optional[Mapping[str, str]] = None) -> dict[str, Any]:
    """Collect ``TRANSPARENT_CACHE_*`` settings from the environment.

    Empty variables are ignored.  Values are left as strings; pydantic
    coerces them during validation.
    """
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}
    for suffix, field in _ENV_FIELDS.items():
        raw = env.get(_ENV_PREFIX + suffix, "")
        if raw:
            values[field] = raw
    return values


# --- Precedence resolution ---


def resolve_config(
    cli_overrides: Optional[Mapping[str, Any]] = None,
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> CacheConfig:
    """Resolve the effective cache configuration.

    Precedence (high to low):
        1. CLI flags (``cli_overrides``; ``None`` values are ignored)
        2. Environment variables (``TRANSPARENT_CACHE_*``)
        3. Config file (*config_path*, else the user-level config file)
        4. Defaults (base path from :func:`get_cache_dir`)

    Raises:
        ConfigError: If the merged values fail validation.
    """
    merged: dict[str, Any] = {"base_path": get_cache_dir()}
    merged.update(load_config_file(config_path or default_config_path()))
    merged.update(config_from_env(environ))
    for key, value in (cli_overrides or {}).items():
        if value is not None:
            merged[key] = value

    try:
        return CacheConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid cache configuration: {exc}") from exc
