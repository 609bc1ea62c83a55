"""Built-in CLI sub-commands for stowaway.

* :mod:`~stowaway.commands.cache` -- install, activate and inspect cache
  generations, and push a single request through the proxy.
* :mod:`~stowaway.commands.events` -- fire the side channels: background
  sync and notifications.
* :mod:`~stowaway.commands.config` -- view and modify the proxy settings.

Each module exports plain callbacks registered on the root app, except
``config`` which is a :class:`typer.Typer` sub-application.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

import typer

from stowaway.exceptions import StowawayError
from stowaway.output import error

T = TypeVar("T")


def run_with_proxy(ctx: typer.Context, action: Callable[[Any], Awaitable[T]]) -> T:
    """Build an :class:`~stowaway.proxy.OfflineProxy` from the resolved config and run *action*.

    The proxy is closed afterwards.  :class:`~stowaway.exceptions.StowawayError`
    is reported on stderr and turned into ``typer.Exit`` with the error's
    exit code.
    """
    from stowaway.config import resolve_config
    from stowaway.proxy import OfflineProxy

    obj = ctx.obj or {}

    async def _run() -> T:
        config = resolve_config(
            cli_version_label=obj.get("version_label"),
            cli_base_url=obj.get("base_url"),
        )
        async with OfflineProxy(config) as proxy:
            return await action(proxy)

    try:
        return asyncio.run(_run())
    except StowawayError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
