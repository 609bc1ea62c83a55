"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for stowaway:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.stowaway/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`, :func:`get_generations_dir`.
* **Proxy config** -- A single :class:`~stowaway.models.ProxyConfig` JSON
  file holding the version label, seed list, API identifiers, deadline, sync
  tasks and notification content.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project-local config, and the user config into the
  effective configuration.

All file writes go through :func:`atomic_write` (temp file then rename), which
the generation manifest in :mod:`stowaway.cache.lifecycle` relies on as well.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from stowaway.exceptions import ConfigError
from stowaway.models import ProxyConfig

_APP_NAME = "stowaway"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "stowaway.json"

ENV_VERSION_LABEL = "STOWAWAY_VERSION_LABEL"
ENV_BASE_URL = "STOWAWAY_BASE_URL"


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

    On Linux/BSD: ``$XDG_CONFIG_HOME/stowaway/`` (default ``~/.config/stowaway/``).
    On macOS/Windows: ``~/.stowaway/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CACHE_HOME/stowaway/`` (default ``~/.cache/stowaway/``).
    On macOS/Windows: ``~/.stowaway/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/stowaway/`` (default ``~/.local/share/stowaway/``).
    On macOS/Windows: ``~/.stowaway/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_generations_dir() -> Path:
    """Return ``<cache_dir>/generations/``, where cache generations live."""
    path = get_cache_dir() / "generations"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is cleaned up and the original file is left untouched.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in the handler below
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


# --- Proxy config ---


def _config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_config() -> ProxyConfig:
    """Load the proxy configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~stowaway.models.ProxyConfig`, or a default
        instance when the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _config_path()
    if not path.is_file():
        return ProxyConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return ProxyConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_config(config: ProxyConfig) -> None:
    """Persist the proxy configuration atomically to disk."""
    data = config.model_dump(mode="json")
    atomic_write(_config_path(), json.dumps(data, indent=2) + "\n")


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local overrides from ``./stowaway.json``.

    Returns:
        The parsed JSON object, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Project config at {path} must be a JSON object")
    return data


# --- Precedence resolution ---


def resolve_config(
    cli_version_label: Optional[str] = None,
    cli_base_url: Optional[str] = None,
    cli_format: Optional[str] = None,
) -> ProxyConfig:
    """Resolve config with the full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_version_label``, ``cli_base_url``, ``cli_format``)
        2. Environment variables (``STOWAWAY_VERSION_LABEL``, ``STOWAWAY_BASE_URL``)
        3. Project config (``./stowaway.json``)
        4. User config (``~/.config/stowaway/config.json``)
        5. Defaults

    Raises:
        ConfigError: If a layer is invalid or the merged result fails validation.
    """
    data = load_config().model_dump(mode="json")

    project = load_project_config()
    if project:
        data = _deep_merge(data, project)

    env_label = os.environ.get(ENV_VERSION_LABEL)
    if env_label:
        data["version_label"] = env_label
    env_base = os.environ.get(ENV_BASE_URL)
    if env_base:
        data["base_url"] = env_base

    if cli_version_label is not None:
        data["version_label"] = cli_version_label
    if cli_base_url is not None:
        data["base_url"] = cli_base_url
    if cli_format is not None:
        data.setdefault("output", {})["format"] = cli_format

    try:
        return ProxyConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid effective configuration: {exc}") from exc


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return *base* updated with *override*, merging nested dicts key by key."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
