"""Cache commands -- install, activate, list generations, and fetch through the proxy.

These map one-to-one onto the proxy's lifecycle and request entry points so
the whole flow can be driven from a shell::

    stowaway --base-url https://example.com install
    stowaway generations
    stowaway fetch https://example.com/app.html
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

import httpx
import typer

from stowaway.commands import run_with_proxy
from stowaway.models import SKIP_WAITING, InterceptedRequest
from stowaway.output import format_response, info, print_table, success


def install_command(ctx: typer.Context) -> None:
    """Seed the configured generation (and activate it unless skip_waiting is off)."""

    async def _install(proxy: Any) -> None:
        store = await proxy.on_install()
        success(f"Generation '{store.label}' holds {len(store)} entries ({proxy.state.value})")

    run_with_proxy(ctx, _install)


def activate_command(ctx: typer.Context) -> None:
    """Force activation of the configured generation (SKIP_WAITING)."""

    async def _activate(proxy: Any) -> bool:
        return await proxy.on_message({"type": SKIP_WAITING})

    if not run_with_proxy(ctx, _activate):
        info("Configured generation is already active.")


def generations_command(ctx: typer.Context) -> None:
    """List installed cache generations."""

    async def _list(proxy: Any) -> list:
        return proxy.lifecycle.generations()

    rows = [
        [
            gen.label,
            str(gen.entries),
            "yes" if gen.active else "",
            datetime.fromtimestamp(gen.created_at).strftime("%Y-%m-%d %H:%M:%S"),
        ]
        for gen in run_with_proxy(ctx, _list)
    ]
    print_table(["label", "entries", "active", "created"], rows, title="Cache generations")


def fetch_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="URL to request through the proxy."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    destination: str = typer.Option(
        "", "--destination", "-d", help="Destination tag, e.g. 'document' or 'image'."
    ),
    classify_only: bool = typer.Option(
        False, "--classify", help="Only print the request class."
    ),
) -> None:
    """Send one request through the proxy and print the response."""
    request = InterceptedRequest(method=method.upper(), url=url, destination=destination)

    async def _fetch(proxy: Any) -> Optional[httpx.Response]:
        if classify_only:
            info(proxy.engine.classify(request).value)
            return None
        return await proxy.on_intercept(request)

    response = run_with_proxy(ctx, _fetch)
    if response is None:
        return

    info(f"HTTP {response.status_code} {response.reason_phrase or ''}".rstrip())
    content_type = response.headers.get("content-type", "")
    data = extract_response_data(response)
    if data is not None:
        format_response(data, content_type)


def extract_response_data(response: httpx.Response) -> Any:
    """Return the JSON-decoded body, the raw text, or ``None`` for an empty body."""
    if not response.content:
        return None
    if "json" in response.headers.get("content-type", ""):
        try:
            return response.json()
        except ValueError:
            pass
    return response.text
