"""Shared test fixtures for stowaway.

Provides isolated config environments, quiet output, a scriptable fake
origin built on :class:`httpx.MockTransport`, and a CLI runner.  These
fixtures are discovered by pytest and available to all test modules.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from stowaway.models import ProxyConfig
from stowaway.output import OutputFormat, OutputManager, reset_output, set_output

ORIGIN = "https://app.example.com"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time; CliRunner swaps those streams, so a stale manager would
    write to closed files.
    """
    yield
    reset_output()


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for the test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True, no_color=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration and cache directories to tmp_path.

    Sets the XDG variables to subdirectories of tmp_path, clears all
    STOWAWAY_* environment variables and changes into tmp_path so a stray
    ``stowaway.json`` cannot leak into the test.
    """
    monkeypatch.setattr("stowaway.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["STOWAWAY_VERSION_LABEL", "STOWAWAY_BASE_URL"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Fake origin
# ---------------------------------------------------------------------------


class FakeOrigin:
    """Scriptable origin server for httpx.MockTransport.

    Routes map an absolute URL to either an :class:`httpx.Response`, an
    exception instance to raise, or the string ``"hang"`` for a request that
    never completes.  Unknown URLs answer 404.  Every request is recorded in
    :attr:`calls`.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Any] = {}
        self.calls: list[httpx.Request] = []
        self.delay: float = 0.0

    def add(self, url: str, body: bytes | str = b"ok", status: int = 200,
            content_type: str = "text/html") -> None:
        content = body.encode() if isinstance(body, str) else body
        self.routes[url] = httpx.Response(
            status, headers={"content-type": content_type}, content=content
        )

    def fail(self, url: str) -> None:
        self.routes[url] = httpx.ConnectError("connection refused")

    def hang(self, url: str) -> None:
        self.routes[url] = "hang"

    def urls(self) -> list[str]:
        return [str(r.url) for r in self.calls]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        route = self.routes.get(str(request.url))
        if self.delay:
            await asyncio.sleep(self.delay)
        if route == "hang":
            await asyncio.sleep(3600)
        if isinstance(route, Exception):
            raise route
        if route is None:
            return httpx.Response(404, content=b"not found")
        return httpx.Response(
            route.status_code, headers=route.headers, content=route.content
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def origin() -> FakeOrigin:
    """A fake origin with ``/`` and ``/index.html`` available."""
    fake = FakeOrigin()
    fake.add(f"{ORIGIN}/", b"<html>root</html>")
    fake.add(f"{ORIGIN}/index.html", b"<html>index</html>")
    return fake


@pytest.fixture
def make_config() -> Callable[..., ProxyConfig]:
    """Factory for a ProxyConfig pointing at the fake origin with a short deadline."""

    def _make(**overrides: Any) -> ProxyConfig:
        values: dict[str, Any] = {
            "version_label": "app-v1",
            "base_url": ORIGIN,
            "seed_urls": ["/", "/index.html"],
            "api_prefix": "/v1/",
            "api_host": "api.example.com",
            "api_deadline": 0.2,
        }
        values.update(overrides)
        return ProxyConfig(**values)

    return _make


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
