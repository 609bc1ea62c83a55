"""Config commands -- view and modify the proxy configuration.

Provides the ``stowaway config`` sub-command group for reading, updating,
and resetting the user's configuration file
(:class:`~stowaway.models.ProxyConfig`).
"""

from __future__ import annotations

import json

import typer

from stowaway.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(
    effective: bool = typer.Option(
        False, "--effective", help="Show the merged config (project file, env, flags)."
    ),
) -> None:
    """Show the current configuration.

    Example::

        stowaway config show
        stowaway --json config show --effective
    """
    from stowaway.config import get_config_dir, load_config, resolve_config

    config = resolve_config() if effective else load_config()
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'api_deadline' or 'sync.success_message')."
    ),
    value: str = typer.Argument(help="Value to set. Lists accept JSON, e.g. '[\"/\"]'."),
) -> None:
    """Set a configuration value.

    The value is coerced to match the existing field's type (bool, int,
    float, list, or str) and the result is validated against
    :class:`~stowaway.models.ProxyConfig` before saving.

    Example::

        stowaway config set version_label app-v2
        stowaway config set api_deadline 2.5
        stowaway config set seed_urls '["/", "/app.html"]'
    """
    from stowaway.config import load_config, save_config
    from stowaway.models import ProxyConfig

    data = load_config().model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    current = target[final_key]
    try:
        if isinstance(current, bool):
            coerced = value.lower() in ("true", "1", "yes")
        elif isinstance(current, int):
            coerced = int(value)
        elif isinstance(current, float):
            coerced = float(value)
        elif isinstance(current, (list, dict)):
            coerced = json.loads(value)
        else:
            coerced = value
    except (ValueError, json.JSONDecodeError):
        error(f"Cannot convert {value!r} for {key}")
        raise typer.Exit(code=2) from None

    target[final_key] = coerced

    try:
        new_config = ProxyConfig.model_validate(data)
    except Exception as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Reset configuration to defaults.

    Example::

        stowaway config reset --force
    """
    from stowaway.config import save_config
    from stowaway.models import ProxyConfig

    if not force:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_config(ProxyConfig())
    success("Configuration reset to defaults.")
