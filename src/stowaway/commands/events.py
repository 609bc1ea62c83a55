"""Event commands -- fire the proxy's side channels from the shell.

* ``stowaway sync TAG`` -- run a background sync task as if connectivity
  had just been restored.
* ``stowaway notify [TEXT]`` -- present a push notification.
* ``stowaway click [ACTION]`` -- resolve a notification interaction to its
  effect.
"""

from __future__ import annotations

from typing import Any, Optional

import typer

from stowaway.commands import run_with_proxy
from stowaway.output import error, format_response, warning


def sync_command(
    ctx: typer.Context,
    tag: str = typer.Argument(help="Tag of the registered sync task."),
) -> None:
    """Run the sync task registered under TAG once."""
    from stowaway.sync import ConsoleObserver

    async def _sync(proxy: Any) -> Any:
        proxy.sync.register(ConsoleObserver())
        return await proxy.on_sync_trigger(tag)

    outcome = run_with_proxy(ctx, _sync)
    if outcome is None:
        error(f"No sync task registered for tag '{tag}'")
        raise typer.Exit(code=2)
    if not outcome.succeeded:
        warning(f"Sync '{tag}' did not complete: {outcome.error}")
    format_response(outcome.model_dump(mode="json"))


def notify_command(
    ctx: typer.Context,
    text: Optional[str] = typer.Argument(None, help="Notification text."),
) -> None:
    """Present a push notification and print its payload."""

    async def _notify(proxy: Any) -> Any:
        return proxy.on_push(text)

    payload = run_with_proxy(ctx, _notify)
    format_response(payload.to_dict())


def click_command(
    ctx: typer.Context,
    action: Optional[str] = typer.Argument(
        None, help="Action id, e.g. 'open-dashboard' or 'close'. Omit for the body."
    ),
) -> None:
    """Print the effect of interacting with a notification."""

    async def _click(proxy: Any) -> Any:
        return proxy.on_notification_interaction(action)

    effect = run_with_proxy(ctx, _click)
    format_response(effect.model_dump(mode="json"))
