"""Platform entry points of the offline proxy.

:class:`OfflineProxy` wires the components together and exposes one method
per platform event.  The hosting application calls these directly instead
of publishing events on a shared bus:

=================================  ============================================
entry point                        component
=================================  ============================================
``on_install()``                   lifecycle manager: seed the new generation
``on_activate()``                  lifecycle manager: activate and prune
``on_message(message)``            ``SKIP_WAITING`` forces activation
``on_intercept(request)``          classifier + fetch strategy engine
``on_sync_trigger(tag)``           sync coordinator
``on_push(text)``                  notification dispatcher (present)
``on_notification_interaction()``  notification dispatcher (route)
=================================  ============================================

Example::

    async with OfflineProxy(config) as proxy:
        await proxy.on_install()
        response = await proxy.on_intercept(InterceptedRequest(url="https://example.com/"))
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Callable, Optional

import httpx

from stowaway.cache.lifecycle import CacheLifecycleManager
from stowaway.cache.store import CacheStore
from stowaway.client.network import NetworkClient
from stowaway.config import get_generations_dir
from stowaway.exceptions import SeedFetchError
from stowaway.models import (
    SKIP_WAITING,
    Effect,
    InterceptedRequest,
    NotificationPayload,
    ProxyConfig,
    SyncOutcome,
)
from stowaway.notifications import NotificationDispatcher, Presenter
from stowaway.output import get_output
from stowaway.strategy import FetchStrategyEngine
from stowaway.sync import SyncCoordinator


class ProxyState(str, enum.Enum):
    """Where the configured generation is in its lifecycle."""

    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


class OfflineProxy:
    """Request-interception cache proxy.

    Args:
        config: Effective proxy configuration.
        cache_root: Directory holding cache generations; defaults to
            :func:`~stowaway.config.get_generations_dir`.
        transport: httpx transport for origin fetches (tests pass
            :class:`httpx.MockTransport`).
        presenter: Notification display backend.
        opener: Callback receiving URLs opened by notification interactions.
    """

    def __init__(
        self,
        config: ProxyConfig,
        cache_root: Optional[str | Path] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        presenter: Optional[Presenter] = None,
        opener: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.config = config
        self._network = NetworkClient(config.request, config.base_url, transport)
        self._lifecycle = CacheLifecycleManager(
            cache_root if cache_root is not None else get_generations_dir(), self._network
        )
        self._engine = FetchStrategyEngine(self._network, lambda: self._lifecycle.active, config)
        self._sync = SyncCoordinator(self._network, config.sync)
        self._notifications = NotificationDispatcher(config.notifications, presenter, opener)

        active = self._lifecycle.active
        if active is not None and active.label == config.version_label:
            self._state = ProxyState.ACTIVATED
        else:
            self._state = ProxyState.PARSED

    @property
    def state(self) -> ProxyState:
        return self._state

    @property
    def lifecycle(self) -> CacheLifecycleManager:
        return self._lifecycle

    @property
    def engine(self) -> FetchStrategyEngine:
        return self._engine

    @property
    def sync(self) -> SyncCoordinator:
        return self._sync

    @property
    def notifications(self) -> NotificationDispatcher:
        return self._notifications

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> OfflineProxy:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Cancel leftover background fetches and release network and cache resources."""
        await self._engine.cancel_background()
        await self._network.aclose()
        self._lifecycle.close()

    # ------------------------------------------------------------------ #
    # Lifecycle entry points
    # ------------------------------------------------------------------ #

    async def on_install(self) -> CacheStore:
        """Seed the configured generation, then activate it when ``skip_waiting`` is set.

        Raises:
            SeedFetchError: If a seed cannot be fetched. The proxy becomes
                ``REDUNDANT`` and keeps serving the previously active
                generation, if any.
        """
        self._state = ProxyState.INSTALLING
        try:
            store = await self._lifecycle.initialize(
                self.config.version_label, self.config.seed_urls
            )
        except SeedFetchError:
            self._state = ProxyState.REDUNDANT
            raise
        self._state = ProxyState.INSTALLED

        if self.config.skip_waiting:
            await self.on_activate()
        else:
            get_output().info(
                f"Generation '{self.config.version_label}' installed and waiting for activation"
            )
        return store

    async def on_activate(self) -> None:
        """Activate the configured generation and delete all others.

        Raises:
            GenerationError: If the configured generation is not installed.
        """
        previous = self._state
        self._state = ProxyState.ACTIVATING
        try:
            await self._lifecycle.activate(self.config.version_label)
        except Exception:
            self._state = previous
            raise
        self._state = ProxyState.ACTIVATED

    async def on_message(self, message: Any) -> bool:
        """Handle a control message from the application.

        ``{"type": "SKIP_WAITING"}`` activates the configured generation
        immediately. Other messages are ignored.

        Returns:
            ``True`` if the message triggered an activation.
        """
        if not isinstance(message, dict) or message.get("type") != SKIP_WAITING:
            return False
        if self._state is ProxyState.ACTIVATED:
            return False
        await self.on_activate()
        return True

    # ------------------------------------------------------------------ #
    # Request path
    # ------------------------------------------------------------------ #

    async def on_intercept(self, request: InterceptedRequest) -> httpx.Response:
        """Answer *request*. Always returns a response, never raises."""
        return await self._engine.handle(request)

    # ------------------------------------------------------------------ #
    # Side channels
    # ------------------------------------------------------------------ #

    async def on_sync_trigger(self, tag: str) -> Optional[SyncOutcome]:
        """Run the sync task registered under *tag*; ``None`` for unknown tags."""
        return await self._sync.trigger(tag)

    def on_push(self, text: Optional[str] = None) -> NotificationPayload:
        """Build and present the notification for a push carrying *text*."""
        payload = self._notifications.build_payload(text)
        self._notifications.present(payload)
        return payload

    def on_notification_interaction(self, action_id: Optional[str] = None) -> Effect:
        """Route a notification interaction to its effect."""
        return self._notifications.on_interaction(action_id)
