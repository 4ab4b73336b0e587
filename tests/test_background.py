from __future__ import annotations

from typing import Any, Callable

import pytest

from mariposa_app.utils.background import BackgroundServices
from mariposa_app.utils.realtime_cache import RealtimeCache
from mariposa_app.utils.ws_client import ERROR_EVENT


class StubClient:
    def __init__(self, url: str) -> None:
        self.url = url
        self.listeners: dict[str, list[Callable[[Any], None]]] = {}
        self.running = False
        self.connected = False
        self.token: str | None = None
        self.disconnects = 0
        self.last_message_at: float | None = None
        self.last_error: str | None = None

    def on(self, event: str, callback: Callable[[Any], None]) -> None:
        self.listeners.setdefault(event, []).append(callback)

    def connect(self, token: str | None) -> bool:
        self.token = token
        self.running = True
        return True

    def disconnect(self) -> None:
        self.disconnects += 1
        self.running = False

    def fire(self, event: str, payload: Any) -> None:
        for callback in self.listeners.get(event, []):
            callback(payload)


@pytest.fixture
def service(captured_logs) -> tuple[BackgroundServices, list[StubClient], RealtimeCache]:
    clients: list[StubClient] = []

    def factory(url: str) -> StubClient:
        client = StubClient(url)
        clients.append(client)
        return client

    cache = RealtimeCache()
    return BackgroundServices(client_factory=factory, cache=cache), clients, cache


def test_feed_is_started_once_per_token(service) -> None:
    services, clients, _cache = service

    assert services.ensure_live_feed("jwt", "https://feed.test") is True
    assert services.ensure_live_feed("jwt", "https://feed.test") is True

    assert len(clients) == 1
    assert clients[0].token == "jwt"
    assert services.client is clients[0]


def test_token_or_url_change_restarts_feed(service) -> None:
    services, clients, _cache = service

    services.ensure_live_feed("jwt-1", "https://feed.test")
    services.ensure_live_feed("jwt-2", "https://feed.test")
    services.ensure_live_feed("jwt-2", "http://localhost:3001")

    assert len(clients) == 3
    assert clients[0].disconnects == 1
    assert clients[1].disconnects == 1
    assert services.ws_snapshot()["restart_count"] == 2


def test_missing_token_stops_feed(service) -> None:
    services, clients, _cache = service
    services.ensure_live_feed("jwt", "https://feed.test")

    assert services.ensure_live_feed(None, "https://feed.test") is False

    assert clients[0].disconnects == 1
    assert services.client is None


def test_feed_events_land_in_cache(service) -> None:
    services, clients, cache = service
    services.ensure_live_feed("jwt", "https://feed.test")

    clients[0].fire("market-update", {"symbol": "BTCUSDT", "price": 64000})
    clients[0].fire("performance-update", {"agentId": "a1", "totalPnL": 12.5})

    assert cache.latest("market-update", "BTCUSDT")["price"] == 64000
    assert cache.latest("performance-update", "a1")["totalPnL"] == 12.5


def test_snapshot_reports_errors_and_counts(service) -> None:
    services, clients, _cache = service
    services.ensure_live_feed("jwt", "https://feed.test")
    clients[0].connected = True

    clients[0].fire(ERROR_EVENT, {"message": "Max reconnect attempts reached"})
    clients[0].fire("trade-update", {"id": "t1"})

    snapshot = services.ws_snapshot()
    assert snapshot["connected"] is True
    assert snapshot["running"] is True
    assert snapshot["url"] == "https://feed.test"
    assert snapshot["last_error"] == "Max reconnect attempts reached"
    assert snapshot["events"] == {"trade-update": 1}
    assert snapshot["last_message_at"] is not None


def test_stop_live_feed(service) -> None:
    services, clients, _cache = service
    services.ensure_live_feed("jwt", "https://feed.test")

    services.stop_live_feed()

    assert clients[0].disconnects == 1
    assert services.ws_snapshot()["connected"] is False
