from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Optional

from .envs import active_ws_url, get_settings
from .log import log
from .realtime_cache import RealtimeCache, get_realtime_cache
from .ws_client import ERROR_EVENT, FEED_EVENTS, LiveFeedClient

ClientFactory = Callable[[str], LiveFeedClient]


def _default_client_factory(url: str) -> LiveFeedClient:
    settings = get_settings()
    return LiveFeedClient(
        url,
        max_reconnect_attempts=settings.ws_max_reconnect_attempts,
        verify_ssl=settings.verify_ssl,
    )


class BackgroundServices:
    """Keep one live-feed connection per process, independent of Streamlit reruns."""

    def __init__(
        self,
        *,
        client_factory: Optional[ClientFactory] = None,
        cache: Optional[RealtimeCache] = None,
    ) -> None:
        self._lock = threading.Lock()
        self._client: Optional[LiveFeedClient] = None
        self._client_factory: ClientFactory = client_factory or _default_client_factory
        self._cache = cache or get_realtime_cache()
        self._url: Optional[str] = None
        self._token: Optional[str] = None
        self._started_at: float = 0.0
        self._restart_count: int = 0
        self._last_error: Optional[str] = None

    def _wire(self, client: LiveFeedClient) -> None:
        for event in FEED_EVENTS:
            client.on(event, self._make_handler(event))
        client.on(ERROR_EVENT, self._handle_error)

    def _make_handler(self, event: str) -> Callable[[Any], None]:
        def _handler(payload: Any) -> None:
            self._cache.update(event, payload)

        return _handler

    def _handle_error(self, payload: Any) -> None:
        message = payload.get("message") if isinstance(payload, dict) else payload
        self._last_error = str(message)

    def ensure_live_feed(self, token: Optional[str], url: Optional[str] = None) -> bool:
        """Start the feed, or restart it when the token or URL changed.

        Returns whether a feed is running after the call. Without a token the
        feed is stopped.
        """

        target_url = url or active_ws_url()
        with self._lock:
            client = self._client
            if not token:
                if client is not None:
                    self._stop_locked()
                return False

            if client is not None and client.running and self._token == token and self._url == target_url:
                return True

            if client is not None:
                self._stop_locked()
                self._restart_count += 1
                log("background.ws.restart", url=target_url, restarts=self._restart_count)

            client = self._client_factory(target_url)
            self._wire(client)
            self._client = client
            self._url = target_url
            self._token = token
            self._last_error = None
            self._started_at = time.time()
            client.connect(token)
            log("background.ws.started", url=target_url)
            return True

    def _stop_locked(self) -> None:
        client = self._client
        self._client = None
        self._token = None
        if client is None:
            return
        try:
            client.disconnect()
        except Exception as exc:
            log("background.ws.stop.error", err=str(exc))

    def stop_live_feed(self) -> None:
        with self._lock:
            self._stop_locked()

    @property
    def client(self) -> Optional[LiveFeedClient]:
        return self._client

    def ws_snapshot(self) -> Dict[str, Any]:
        client = self._client
        last_message = client.last_message_at if client is not None else None
        return {
            "connected": bool(client is not None and client.connected),
            "running": bool(client is not None and client.running),
            "url": self._url,
            "started_at": self._started_at or None,
            "restart_count": self._restart_count,
            "last_message_at": last_message or self._cache.last_update,
            "last_error": self._last_error or (client.last_error if client is not None else None),
            "events": self._cache.event_counts(),
        }


_state = BackgroundServices()


def ensure_live_feed(token: Optional[str], url: Optional[str] = None) -> bool:
    return _state.ensure_live_feed(token, url)


def stop_live_feed() -> None:
    _state.stop_live_feed()


def get_live_client() -> Optional[LiveFeedClient]:
    return _state.client


def get_ws_snapshot() -> Dict[str, Any]:
    return _state.ws_snapshot()
