"""Tests for the fetch strategy engine."""

from __future__ import annotations

import asyncio
import time

import httpx
import pytest

from stowaway.cache import CacheStore
from stowaway.client import NetworkClient
from stowaway.models import InterceptedRequest
from stowaway.strategy import OFFLINE_TEXT, FetchStrategyEngine

ORIGIN = "https://app.example.com"


@pytest.fixture
def store(tmp_path):
    s = CacheStore(tmp_path / "app-v1", "app-v1")
    yield s
    s.close()


@pytest.fixture
def engine_factory(origin, make_config, quiet_output):
    """Build an engine against the fake origin and a chosen store."""

    def _make(store=None, **overrides):
        config = make_config(**overrides)
        network = NetworkClient(config.request, config.base_url, origin.transport)
        return FetchStrategyEngine(network, lambda: store, config)

    return _make


def _cached(store: CacheStore, path: str, body: bytes) -> None:
    store.put(
        "GET",
        f"{ORIGIN}{path}",
        httpx.Response(200, headers={"content-type": "text/html"}, content=body),
    )


# ------------------------------------------------------------------ #
# API: network raced against the deadline
# ------------------------------------------------------------------ #


class TestApiRequests:
    def test_hanging_network_answers_offline_within_deadline(self, engine_factory, origin) -> None:
        origin.hang(f"{ORIGIN}/v1/items")
        engine = engine_factory()

        async def scenario():
            started = time.monotonic()
            response = await engine.handle(InterceptedRequest(url=f"{ORIGIN}/v1/items"))
            elapsed = time.monotonic() - started
            pending = engine.pending
            await engine.cancel_background()
            return response, elapsed, pending

        response, elapsed, pending = asyncio.run(scenario())

        assert elapsed < 1.0
        assert response.status_code == 503
        body = response.json()
        assert body["error"] == "offline"
        assert body["offline"] is True
        assert "No internet connection" in body["message"]
        assert pending == 1
        assert engine.pending == 0

    def test_network_response_returned_verbatim(self, engine_factory, origin) -> None:
        origin.add(f"{ORIGIN}/v1/items", b'{"items": [1, 2]}', content_type="application/json")
        engine = engine_factory()

        response = asyncio.run(engine.handle(InterceptedRequest(url=f"{ORIGIN}/v1/items")))
        assert response.status_code == 200
        assert response.json() == {"items": [1, 2]}

    @pytest.mark.parametrize("status", [401, 404, 500])
    def test_error_statuses_not_replaced(self, engine_factory, origin, status) -> None:
        origin.add(f"{ORIGIN}/v1/items", b"denied", status=status, content_type="text/plain")
        engine = engine_factory()

        response = asyncio.run(engine.handle(InterceptedRequest(url=f"{ORIGIN}/v1/items")))
        assert response.status_code == status
        assert response.content == b"denied"

    def test_unreachable_network_answers_offline(self, engine_factory, origin) -> None:
        origin.fail("https://api.example.com/status")
        engine = engine_factory()

        response = asyncio.run(
            engine.handle(InterceptedRequest(url="https://api.example.com/status"))
        )
        assert response.status_code == 503
        assert response.json()["error"] == "offline"

    def test_custom_offline_message(self, engine_factory, origin) -> None:
        origin.fail(f"{ORIGIN}/v1/items")
        engine = engine_factory(offline_message="Try later")
        response = asyncio.run(engine.handle(InterceptedRequest(url=f"{ORIGIN}/v1/items")))
        assert response.json()["message"] == "Try later"

    def test_api_responses_never_cached(self, engine_factory, origin, store) -> None:
        origin.add(f"{ORIGIN}/v1/items", b"[]", content_type="application/json")
        engine = engine_factory(store)

        asyncio.run(engine.handle(InterceptedRequest(url=f"{ORIGIN}/v1/items")))
        assert len(store) == 0

    def test_api_ignores_cache(self, engine_factory, origin, store) -> None:
        _cached(store, "/v1/items", b"stale")
        origin.add(f"{ORIGIN}/v1/items", b"fresh")
        engine = engine_factory(store)

        response = asyncio.run(engine.handle(InterceptedRequest(url=f"{ORIGIN}/v1/items")))
        assert response.content == b"fresh"


# ------------------------------------------------------------------ #
# STATIC: cache first with write-through
# ------------------------------------------------------------------ #


class TestStaticRequests:
    def test_cache_hit_skips_network(self, engine_factory, origin, store) -> None:
        _cached(store, "/app.js", b"cached-js")
        engine = engine_factory(store)

        response = asyncio.run(engine.handle(InterceptedRequest(url=f"{ORIGIN}/app.js")))
        assert response.status_code == 200
        assert response.content == b"cached-js"
        assert origin.calls == []

    def test_miss_fetches_and_writes_through(self, engine_factory, origin, store) -> None:
        origin.add(f"{ORIGIN}/app.css", b"body{}", content_type="text/css")
        engine = engine_factory(store)

        async def scenario():
            first = await engine.handle(InterceptedRequest(url=f"{ORIGIN}/app.css"))
            second = await engine.handle(InterceptedRequest(url=f"{ORIGIN}/app.css"))
            return first, second

        first, second = asyncio.run(scenario())
        assert first.content == second.content == b"body{}"
        assert origin.urls() == [f"{ORIGIN}/app.css"]
        assert store.get("GET", f"{ORIGIN}/app.css") is not None

    def test_relative_url_resolved_against_origin(self, engine_factory, origin, store) -> None:
        _cached(store, "/logo.svg", b"<svg/>")
        engine = engine_factory(store)
        response = asyncio.run(engine.handle(InterceptedRequest(url="/logo.svg")))
        assert response.content == b"<svg/>"

    def test_error_status_returned_but_not_cached(self, engine_factory, origin, store) -> None:
        engine = engine_factory(store)

        response = asyncio.run(engine.handle(InterceptedRequest(url=f"{ORIGIN}/missing.css")))
        assert response.status_code == 404
        assert len(store) == 0

    def test_post_passes_through_uncached(self, engine_factory, origin, store) -> None:
        origin.add(f"{ORIGIN}/form", b"thanks")
        engine = engine_factory(store)

        response = asyncio.run(
            engine.handle(InterceptedRequest(method="POST", url=f"{ORIGIN}/form", body=b"a=1"))
        )
        assert response.content == b"thanks"
        assert origin.calls[0].method == "POST"
        assert origin.calls[0].content == b"a=1"
        assert len(store) == 0

    def test_offline_without_cache_answers_text_503(self, engine_factory, origin) -> None:
        origin.fail(f"{ORIGIN}/app.js")
        engine = engine_factory()

        response = asyncio.run(engine.handle(InterceptedRequest(url=f"{ORIGIN}/app.js")))
        assert response.status_code == 503
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text == OFFLINE_TEXT

    def test_offline_static_falls_back_to_default_document(
        self, engine_factory, origin, store
    ) -> None:
        _cached(store, "/index.html", b"<html>index</html>")
        origin.fail(f"{ORIGIN}/app.js")
        engine = engine_factory(store)

        response = asyncio.run(engine.handle(InterceptedRequest(url=f"{ORIGIN}/app.js")))
        assert response.content == b"<html>index</html>"

    def test_no_active_generation_still_fetches(self, engine_factory, origin) -> None:
        origin.add(f"{ORIGIN}/app.js", b"js")
        engine = engine_factory()
        response = asyncio.run(engine.handle(InterceptedRequest(url=f"{ORIGIN}/app.js")))
        assert response.content == b"js"

    def test_retired_store_behaves_like_a_miss(self, engine_factory, origin, store) -> None:
        _cached(store, "/app.js", b"old")
        store.retire()
        origin.add(f"{ORIGIN}/app.js", b"new")
        engine = engine_factory(store)

        response = asyncio.run(engine.handle(InterceptedRequest(url=f"{ORIGIN}/app.js")))
        assert response.content == b"new"


# ------------------------------------------------------------------ #
# DOCUMENT: navigation with default-document fallback
# ------------------------------------------------------------------ #


class TestDocumentRequests:
    def test_offline_navigation_serves_default_document(
        self, engine_factory, origin, store
    ) -> None:
        _cached(store, "/index.html", b"<html>index</html>")
        origin.fail(f"{ORIGIN}/reports/2024")
        engine = engine_factory(store)

        response = asyncio.run(
            engine.handle(
                InterceptedRequest(url=f"{ORIGIN}/reports/2024", destination="document")
            )
        )
        assert response.status_code == 200
        assert response.content == b"<html>index</html>"

    def test_cached_page_preferred(self, engine_factory, origin, store) -> None:
        _cached(store, "/", b"<html>root</html>")
        engine = engine_factory(store)

        response = asyncio.run(
            engine.handle(InterceptedRequest(url=f"{ORIGIN}/", destination="document"))
        )
        assert response.content == b"<html>root</html>"
        assert origin.calls == []

    def test_offline_without_default_document(self, engine_factory, origin, store) -> None:
        origin.fail(f"{ORIGIN}/about")
        engine = engine_factory(store, default_document=None)

        response = asyncio.run(
            engine.handle(InterceptedRequest(url=f"{ORIGIN}/about", destination="document"))
        )
        assert response.status_code == 503
        assert response.text == OFFLINE_TEXT

    def test_online_navigation_written_through(self, engine_factory, origin, store) -> None:
        origin.add(f"{ORIGIN}/about", b"<html>about</html>")
        engine = engine_factory(store)

        asyncio.run(
            engine.handle(InterceptedRequest(url=f"{ORIGIN}/about", destination="document"))
        )
        assert store.get("GET", f"{ORIGIN}/about").body == b"<html>about</html>"


# ------------------------------------------------------------------ #
# Edge cases
# ------------------------------------------------------------------ #


class TestMalformedUrls:
    @pytest.mark.parametrize("destination", ["", "document"])
    def test_malformed_url_gets_default_document(
        self, engine_factory, origin, store, destination
    ) -> None:
        _cached(store, "/index.html", b"<html>index</html>")
        engine = engine_factory(store)

        response = asyncio.run(
            engine.handle(InterceptedRequest(url="http://[::1/app.js", destination=destination))
        )
        assert response.status_code == 200
        assert response.content == b"<html>index</html>"
        assert origin.calls == []

    def test_malformed_url_without_cache(self, engine_factory, origin) -> None:
        engine = engine_factory()
        response = asyncio.run(engine.handle(InterceptedRequest(url="http://[::1/app.js")))
        assert response.status_code == 503
        assert response.text == OFFLINE_TEXT


class TestDeadlineTie:
    def test_result_ready_when_deadline_fires_wins(
        self, engine_factory, origin, monkeypatch
    ) -> None:
        origin.add(f"{ORIGIN}/v1/items", b'{"items": []}', content_type="application/json")
        engine = engine_factory()
        timeouts = []

        async def deadline_fires_as_fetch_completes(tasks, timeout=None):
            timeouts.append(timeout)
            for task in tasks:
                await task
            return set(), set(tasks)

        monkeypatch.setattr("stowaway.strategy.asyncio.wait", deadline_fires_as_fetch_completes)

        response = asyncio.run(engine.handle(InterceptedRequest(url=f"{ORIGIN}/v1/items")))
        assert timeouts == [0.2]
        assert response.status_code == 200
        assert response.json() == {"items": []}
        assert engine.pending == 0


class FailingStore(CacheStore):
    def put(self, method, url, response):
        raise OSError("disk full")


class TestWriteThroughFailure:
    def test_failed_cache_write_still_returns_response(
        self, engine_factory, origin, tmp_path
    ) -> None:
        origin.add(f"{ORIGIN}/app.js", b"js", content_type="application/javascript")
        failing = FailingStore(tmp_path / "failing", "app-v1")
        try:
            engine = engine_factory(failing)
            response = asyncio.run(engine.handle(InterceptedRequest(url=f"{ORIGIN}/app.js")))
            assert response.status_code == 200
            assert response.content == b"js"
            assert len(failing) == 0
        finally:
            failing.close()
