"""Notification rendering and interaction routing.

:class:`NotificationDispatcher` shows a
:class:`~stowaway.models.NotificationPayload` through a presenter and turns
the user's response into an :class:`~stowaway.models.Effect`:

==================  ==========================================
action id           effect
==================  ==========================================
``open-dashboard``  ``OPEN_DASHBOARD`` (configured dashboard URL)
``close``           ``DISMISS``
anything else       ``OPEN_ROOT`` (configured root URL)
==================  ==========================================
"""

from __future__ import annotations

import time
from typing import Callable, Optional, Protocol

from stowaway.models import (
    Effect,
    EffectKind,
    NotificationAction,
    NotificationConfig,
    NotificationPayload,
)
from stowaway.output import get_output

ACTION_OPEN_DASHBOARD = "open-dashboard"
ACTION_CLOSE = "close"


class Presenter(Protocol):
    """Something that can display a notification to the user."""

    def show(self, payload: NotificationPayload) -> None: ...


class ConsolePresenter:
    """Presenter rendering notifications as a Rich panel on stderr."""

    def show(self, payload: NotificationPayload) -> None:
        get_output().notification(
            payload.title, payload.body, [action.title for action in payload.actions]
        )


class NotificationDispatcher:
    """Presents notifications and routes interactions back to the application.

    Args:
        config: Notification content and target URLs.
        presenter: Display backend; defaults to :class:`ConsolePresenter`.
        opener: Optional callback receiving the URL of an open effect.
    """

    def __init__(
        self,
        config: Optional[NotificationConfig] = None,
        presenter: Optional[Presenter] = None,
        opener: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._config = config or NotificationConfig()
        self._presenter = presenter or ConsolePresenter()
        self._opener = opener
        self._open: Optional[NotificationPayload] = None

    @property
    def current(self) -> Optional[NotificationPayload]:
        """The notification on screen, or ``None`` once it was interacted with."""
        return self._open

    def build_payload(self, text: Optional[str] = None) -> NotificationPayload:
        """Build the standard payload for a push carrying *text*."""
        cfg = self._config
        return NotificationPayload(
            title=cfg.title,
            body=text or cfg.default_body,
            icon=cfg.icon,
            badge=cfg.badge,
            vibrate=list(cfg.vibrate),
            data={"date_of_arrival": int(time.time() * 1000), "primary_key": 1},
            actions=[
                NotificationAction(id=ACTION_OPEN_DASHBOARD, title="Open Dashboard", icon=cfg.icon),
                NotificationAction(id=ACTION_CLOSE, title="Close", icon=cfg.icon),
            ],
        )

    def present(self, payload: NotificationPayload) -> None:
        """Render *payload* with its action set."""
        self._presenter.show(payload)
        self._open = payload

    def on_interaction(self, action_id: Optional[str] = None) -> Effect:
        """Close the open notification and return the effect for *action_id*."""
        self._open = None
        if action_id == ACTION_OPEN_DASHBOARD:
            effect = Effect(kind=EffectKind.OPEN_DASHBOARD, url=self._config.dashboard_url)
        elif action_id == ACTION_CLOSE:
            effect = Effect(kind=EffectKind.DISMISS)
        else:
            effect = Effect(kind=EffectKind.OPEN_ROOT, url=self._config.root_url)

        if effect.url and self._opener is not None:
            self._opener(effect.url)
        return effect
