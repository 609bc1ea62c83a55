"""Fetch strategy engine -- one retrieval algorithm per request class.

:class:`FetchStrategyEngine` is entered once per intercepted request and
always terminates with a response; it never raises.

* **API** -- network fetch raced against a deadline.  The network response
  is returned verbatim when it arrives in time, otherwise the synthetic
  offline JSON response (status 503).  A fetch that loses the race keeps
  running in the background and its result is discarded.
* **STATIC / DOCUMENT** -- cache first.  A hit never touches the network.  A
  miss goes to the network and a successful ``GET`` is written through to
  the active generation.  When the network is unavailable the fallback chain
  runs: the request key again, then the default document, then a plain-text
  503.

Each request captures the active generation once on entry, so it works
against one consistent generation even if activation happens mid-flight.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

import httpx

from stowaway.cache.store import CacheStore, entry_to_response
from stowaway.classifier import classify
from stowaway.client.network import NetworkClient
from stowaway.exceptions import NetworkUnavailable
from stowaway.models import InterceptedRequest, ProxyConfig, RequestClass
from stowaway.output import get_output

OFFLINE_TEXT = "Offline — cached resource not available"


def offline_api_response(message: str) -> httpx.Response:
    """Synthetic 503 returned to API requests that cannot reach the network."""
    return httpx.Response(
        status_code=503,
        json={"error": "offline", "message": message, "offline": True},
    )


def offline_text_response() -> httpx.Response:
    """Synthetic 503 returned when no cached fallback exists."""
    return httpx.Response(
        status_code=503,
        headers={"Content-Type": "text/plain; charset=utf-8"},
        content=OFFLINE_TEXT.encode("utf-8"),
    )


class FetchStrategyEngine:
    """Executes the per-class retrieval algorithm for intercepted requests.

    Args:
        network: Client used for every origin fetch.
        active_store: Callable returning the generation currently serving
            requests, or ``None`` before activation.
        config: Supplies the API prefix/host, the deadline, the default
            document and the offline message.
    """

    def __init__(
        self,
        network: NetworkClient,
        active_store: Callable[[], Optional[CacheStore]],
        config: ProxyConfig,
    ) -> None:
        self._network = network
        self._active_store = active_store
        self._config = config
        self._background: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of race-losing fetches still running in the background."""
        return len(self._background)

    def classify(self, request: InterceptedRequest) -> RequestClass:
        return classify(request, self._config.api_prefix, self._config.api_host)

    async def handle(self, request: InterceptedRequest) -> httpx.Response:
        """Return a response for *request*. Never raises."""
        request_class = self.classify(request)
        store = self._active_store()
        get_output().debug(f"{request.method} {request.url} -> {request_class.value}")
        try:
            if request_class is RequestClass.API:
                return await self._network_with_deadline(request)
            return await self._cache_first(request, store)
        except Exception as exc:
            get_output().warning(f"Serving fallback for {request.url}: {exc}")
            if request_class is RequestClass.API:
                return offline_api_response(self._config.offline_message)
            return self._fallback(request, store)

    async def cancel_background(self) -> None:
        """Cancel fetches that lost their race and are still running."""
        tasks = list(self._background)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._background.clear()

    # ------------------------------------------------------------------ #
    # Strategies
    # ------------------------------------------------------------------ #

    async def _network_with_deadline(self, request: InterceptedRequest) -> httpx.Response:
        task = asyncio.ensure_future(self._network.fetch(request))
        try:
            await asyncio.wait({task}, timeout=self._config.api_deadline)
        finally:
            if not task.done():
                self._detach(task)

        # A fetch that finished by the time the deadline fired still wins.
        if task.done() and not task.cancelled():
            if task.exception() is None:
                return task.result()
            get_output().debug(f"API fetch failed: {task.exception()}")
        elif not task.done():
            get_output().debug(
                f"API fetch exceeded {self._config.api_deadline}s deadline: {request.url}"
            )
        return offline_api_response(self._config.offline_message)

    async def _cache_first(
        self, request: InterceptedRequest, store: Optional[CacheStore]
    ) -> httpx.Response:
        url = self._network.resolve(request.url)
        if store is not None:
            entry = store.get(request.method, url)
            if entry is not None:
                get_output().debug(f"Cache hit in '{store.label}': {url}")
                return entry_to_response(entry)

        try:
            response = await self._network.fetch(request)
        except NetworkUnavailable:
            return self._fallback(request, store)

        self._write_through(store, request.method, url, response)
        return response

    def _fallback(
        self, request: InterceptedRequest, store: Optional[CacheStore]
    ) -> httpx.Response:
        if store is None:
            return offline_text_response()
        try:
            url = self._network.resolve(request.url)
            entry = store.get(request.method, url)
            if entry is None and self._config.default_document:
                entry = store.get("GET", self._network.resolve(self._config.default_document))
            if entry is not None:
                return entry_to_response(entry)
        except Exception as exc:
            get_output().warning(f"Cached fallback unavailable for {request.url}: {exc}")
        return offline_text_response()

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _write_through(
        self,
        store: Optional[CacheStore],
        method: str,
        url: str,
        response: httpx.Response,
    ) -> None:
        if store is None:
            return
        try:
            if store.put(method, url, response) is not None:
                get_output().debug(f"Cached {url} in '{store.label}'")
        except Exception as exc:
            get_output().warning(f"Could not cache {url}: {exc}")

    def _detach(self, task: asyncio.Task) -> None:
        self._background.add(task)
        task.add_done_callback(self._discard)

    def _discard(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            get_output().debug(f"Background fetch finished with error: {task.exception()}")
