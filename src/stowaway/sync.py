"""Background sync on connectivity restoration.

The platform calls :meth:`SyncCoordinator.trigger` with a task tag when the
connection comes back.  The coordinator makes one ``GET`` to the task's
endpoint.  On a 2xx answer every registered observer receives::

    {"type": "sync-success", "message": "<configured text>"}

Anything else is a :class:`~stowaway.exceptions.SyncFailure` that is logged
at debug level and dropped: no retry is scheduled and nothing reaches the
caller or the observers.  Running a task again is always safe.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

import httpx

from stowaway.client.network import NetworkClient
from stowaway.exceptions import NetworkUnavailable, SyncFailure
from stowaway.models import SYNC_SUCCESS, SyncConfig, SyncOutcome, SyncTask
from stowaway.output import get_output


class Observer(Protocol):
    """A connected client that can receive posted messages."""

    def post_message(self, message: dict[str, Any]) -> None: ...


class ConsoleObserver:
    """Observer that reports posted messages on stderr."""

    def post_message(self, message: dict[str, Any]) -> None:
        get_output().success(message.get("message", message.get("type", "")))


class SyncCoordinator:
    """Runs tagged sync tasks and reports success to observers.

    Args:
        network: Client used for the sync call.
        config: Registered tasks and the success message.
    """

    def __init__(self, network: NetworkClient, config: Optional[SyncConfig] = None) -> None:
        self._network = network
        self._config = config or SyncConfig()
        self._observers: list[Observer] = []

    @property
    def observers(self) -> list[Observer]:
        return list(self._observers)

    def register(self, observer: Observer) -> None:
        """Connect *observer*. Registering the same observer twice is a no-op."""
        if observer not in self._observers:
            self._observers.append(observer)

    def unregister(self, observer: Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def task_for(self, tag: str) -> Optional[SyncTask]:
        """Return the configured task registered under *tag*, if any."""
        for task in self._config.tasks:
            if task.tag == tag:
                return SyncTask(tag=task.tag, endpoint=task.endpoint)
        return None

    async def trigger(self, tag: str) -> Optional[SyncOutcome]:
        """Run the task registered under *tag*; unknown tags are ignored."""
        task = self.task_for(tag)
        if task is None:
            get_output().debug(f"No sync task registered for tag '{tag}'")
            return None
        return await self.run_sync(task)

    async def run_sync(self, task: SyncTask) -> SyncOutcome:
        """Attempt *task* once.

        Returns:
            A :class:`~stowaway.models.SyncOutcome`; failures are reported
            there instead of raised.
        """
        try:
            response = await self._attempt(task)
        except SyncFailure as exc:
            get_output().debug(f"Sync '{task.tag}' dropped: {exc}")
            return SyncOutcome(
                tag=task.tag, succeeded=False, status_code=exc.status_code, error=str(exc)
            )

        delivered = self._broadcast({"type": SYNC_SUCCESS, "message": self._config.success_message})
        get_output().info(f"Sync '{task.tag}' succeeded; notified {delivered} observer(s)")
        return SyncOutcome(
            tag=task.tag, succeeded=True, delivered=delivered, status_code=response.status_code
        )

    async def _attempt(self, task: SyncTask) -> httpx.Response:
        try:
            response = await self._network.get(task.endpoint)
        except NetworkUnavailable as exc:
            raise SyncFailure(f"{task.endpoint} unreachable: {exc}") from exc
        if not response.is_success:
            raise SyncFailure(
                f"{task.endpoint} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response

    def _broadcast(self, message: dict[str, Any]) -> int:
        delivered = 0
        for observer in list(self._observers):
            try:
                observer.post_message(dict(message))
            except Exception as exc:
                get_output().warning(f"Observer {observer!r} rejected message: {exc}")
                continue
            delivered += 1
        return delivered
