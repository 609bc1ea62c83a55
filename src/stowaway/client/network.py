"""Asynchronous network client -- the proxy's only path to the origin.

This module provides :class:`NetworkClient`, a thin wrapper around
:class:`httpx.AsyncClient` used by the lifecycle manager (seeding), the
fetch strategy engine (pass-through and write-through fetches), and the sync
coordinator.  Request failures of any kind (DNS, refused connections,
timeouts, redirect loops, undecodable bodies, unparseable URLs) are mapped to
:class:`~stowaway.exceptions.NetworkUnavailable` so callers deal with a
single failure type.  HTTP error statuses are *not* failures here: a 404
from the origin is a response like any other.

The transport is injectable, which is how tests substitute
:class:`httpx.MockTransport` for real sockets.
"""

from __future__ import annotations

from typing import Optional

import httpx

from stowaway.classifier import absolute_url
from stowaway.exceptions import NetworkUnavailable
from stowaway.models import InterceptedRequest, RequestConfig
from stowaway.output import get_output


class NetworkClient:
    """Asynchronous HTTP client for origin fetches.

    The underlying :class:`httpx.AsyncClient` is created on first use or on
    entering the async context manager, and closed by :meth:`aclose`.

    Args:
        config: Transport settings (timeout, SSL verification).
        base_url: Origin against which relative URLs are resolved.
        transport: Optional httpx transport; defaults to real network I/O.

    Example::

        async with NetworkClient(RequestConfig(), base_url="https://example.com") as net:
            response = await net.get("/index.html")
    """

    def __init__(
        self,
        config: Optional[RequestConfig] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config or RequestConfig()
        self._base_url = base_url
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> NetworkClient:
        self._open()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    def resolve(self, url: str) -> str:
        """Return *url* resolved against the configured origin."""
        return absolute_url(url, self._base_url)

    async def fetch(self, request: InterceptedRequest) -> httpx.Response:
        """Send *request* to the network and return the fully read response.

        Raises:
            NetworkUnavailable: When the request cannot be completed.
        """
        client = self._open()
        url = self.resolve(request.url)
        try:
            return await client.request(
                request.method.upper(),
                url,
                headers=request.headers or None,
                content=request.body,
            )
        except (httpx.RequestError, httpx.InvalidURL) as exc:
            get_output().debug(f"Network unavailable for {request.method} {url}: {exc}")
            raise NetworkUnavailable(f"{request.method} {url} failed: {exc}") from exc

    async def get(self, url: str) -> httpx.Response:
        """Send a GET request to *url*.

        Raises:
            NetworkUnavailable: When the request cannot be completed.
        """
        return await self.fetch(InterceptedRequest(method="GET", url=url))

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _open(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.timeout,
                verify=self._config.verify_ssl,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client
