"""Typer application factory and CLI entry point for stowaway.

This module wires together the top-level Typer application and registers the
built-in commands (``install``, ``activate``, ``generations``, ``fetch``,
``sync``, ``notify``, ``click``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers, registers commands, and
invokes the Typer app. Unhandled exceptions are written to a crash log under
the data directory.

See Also:
    :mod:`stowaway.config`: Configuration resolution.
    :mod:`stowaway.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from stowaway import __version__
from stowaway.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="stowaway",
    help="Offline-resilient request-interception cache proxy.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"stowaway {__version__}")
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
    version_label: Optional[str] = typer.Option(
        None, "--version-label", "-l", help="Cache generation label to use."
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", "-b", help="Origin for relative URLs."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~stowaway.output.OutputManager` and stores
    the config overrides in ``ctx.obj`` for the commands.
    """
    from stowaway.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    ctx.ensure_object(dict)
    ctx.obj["version_label"] = version_label
    ctx.obj["base_url"] = base_url
    ctx.obj["verbose"] = verbose


def register_commands() -> None:
    """Attach the built-in commands to :data:`app`. Safe to call more than once."""
    if getattr(app, "_stowaway_registered", False):
        return

    from stowaway.commands.cache import (
        activate_command,
        fetch_command,
        generations_command,
        install_command,
    )
    from stowaway.commands.config import config_app
    from stowaway.commands.events import click_command, notify_command, sync_command

    app.command("install")(install_command)
    app.command("activate")(activate_command)
    app.command("generations")(generations_command)
    app.command("fetch")(fetch_command)
    app.command("sync")(sync_command)
    app.command("notify")(notify_command)
    app.command("click")(click_command)
    app.add_typer(config_app, name="config", help="Configuration management.")
    app._stowaway_registered = True  # type: ignore[attr-defined]


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from stowaway.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``stowaway`` console script.

    :class:`~stowaway.exceptions.StowawayError` instances cause a clean exit
    with the error's ``exit_code``. All other exceptions produce a crash log
    and a generic failure exit.
    """
    _setup_signal_handlers()
    try:
        register_commands()
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from stowaway.exceptions import StowawayError
        from stowaway.output import error

        if isinstance(exc, StowawayError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
