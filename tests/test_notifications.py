"""Tests for notification payloads and interaction routing."""

from __future__ import annotations

import time

import pytest

from stowaway.models import EffectKind, NotificationConfig, NotificationPayload
from stowaway.notifications import NotificationDispatcher


class RecordingPresenter:
    def __init__(self) -> None:
        self.shown: list[NotificationPayload] = []

    def show(self, payload: NotificationPayload) -> None:
        self.shown.append(payload)


@pytest.fixture
def presenter() -> RecordingPresenter:
    return RecordingPresenter()


@pytest.fixture
def opened() -> list[str]:
    return []


@pytest.fixture
def dispatcher(presenter, opened) -> NotificationDispatcher:
    return NotificationDispatcher(NotificationConfig(), presenter, opened.append)


class TestBuildPayload:
    def test_text_becomes_body(self, dispatcher) -> None:
        payload = dispatcher.build_payload("Build finished")
        assert payload.body == "Build finished"
        assert payload.title == "stowaway"
        assert payload.vibrate == [100, 50, 100]

    @pytest.mark.parametrize("text", [None, ""])
    def test_missing_text_uses_default_body(self, dispatcher, text) -> None:
        assert dispatcher.build_payload(text).body == "New notification"

    def test_actions(self, dispatcher) -> None:
        payload = dispatcher.build_payload("hi")
        assert [(a.id, a.title) for a in payload.actions] == [
            ("open-dashboard", "Open Dashboard"),
            ("close", "Close"),
        ]

    def test_data_carries_arrival_time(self, dispatcher) -> None:
        before = int(time.time() * 1000)
        payload = dispatcher.build_payload("hi")
        assert payload.data["primary_key"] == 1
        assert payload.data["date_of_arrival"] >= before

    def test_wire_shape(self, dispatcher) -> None:
        data = dispatcher.build_payload("hi").to_dict()
        assert data["actions"][0]["action"] == "open-dashboard"
        assert "id" not in data["actions"][0]
        assert data["body"] == "hi"


class TestPresent:
    def test_presenter_receives_payload(self, dispatcher, presenter) -> None:
        payload = dispatcher.build_payload("hi")
        dispatcher.present(payload)
        assert presenter.shown == [payload]
        assert dispatcher.current is payload


class TestOnInteraction:
    def test_open_dashboard(self, dispatcher, opened) -> None:
        dispatcher.present(dispatcher.build_payload("hi"))
        effect = dispatcher.on_interaction("open-dashboard")
        assert effect.kind is EffectKind.OPEN_DASHBOARD
        assert effect.url == "/dashboard.html"
        assert opened == ["/dashboard.html"]
        assert dispatcher.current is None

    def test_close_dismisses(self, dispatcher, opened) -> None:
        dispatcher.present(dispatcher.build_payload("hi"))
        effect = dispatcher.on_interaction("close")
        assert effect.kind is EffectKind.DISMISS
        assert effect.url is None
        assert opened == []
        assert dispatcher.current is None

    @pytest.mark.parametrize("action", [None, "", "snooze"])
    def test_anything_else_opens_root(self, dispatcher, opened, action) -> None:
        effect = dispatcher.on_interaction(action)
        assert effect.kind is EffectKind.OPEN_ROOT
        assert effect.url == "/"
        assert opened == ["/"]

    def test_configured_urls(self, presenter) -> None:
        dispatcher = NotificationDispatcher(
            NotificationConfig(dashboard_url="/admin", root_url="/home"), presenter
        )
        assert dispatcher.on_interaction("open-dashboard").url == "/admin"
        assert dispatcher.on_interaction().url == "/home"
