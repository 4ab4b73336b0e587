"""Live push feed from the backend's Socket.IO endpoint.

The backend speaks Socket.IO v4 over Engine.IO v4. Only the websocket
transport is used, so the framing handled here is small:

* ``0{...}``  Engine.IO open; answered with the Socket.IO connect ``40{auth}``
* ``2``       Engine.IO ping; answered with pong ``3``
* ``40{...}`` Socket.IO connected
* ``41``      Socket.IO disconnected by the server
* ``42[...]`` event ``["name", data]``
* ``44{...}`` Socket.IO connect error
"""

from __future__ import annotations

import json
import random
import ssl
import threading
import time
from typing import Any, Callable, Optional
from urllib.parse import urlsplit, urlunsplit

import websocket  # websocket-client

from .log import log

FEED_EVENTS: tuple[str, ...] = (
    "market-update",
    "analysis-update",
    "trade-update",
    "performance-update",
    "binance-status",
    "live-data",
)
ERROR_EVENT = "error"
MAX_BACKOFF = 60.0

Listener = Callable[[Any], None]


def socket_url(base_url: str) -> str:
    """Return the Engine.IO websocket URL for an ``http(s)``/``ws(s)`` base."""

    parts = urlsplit(str(base_url).strip())
    scheme = {"http": "ws", "https": "wss"}.get(parts.scheme, parts.scheme or "ws")
    path = parts.path.rstrip("/")
    if not path.endswith("/socket.io"):
        path = f"{path}/socket.io"
    return urlunsplit((scheme, parts.netloc, f"{path}/", "EIO=4&transport=websocket", ""))


def _split_packet(body: str) -> tuple[str, str]:
    """Split ``[/namespace,][ack id]payload`` into (namespace, payload)."""

    namespace = "/"
    if body.startswith("/"):
        namespace, _, body = body.partition(",")
    index = 0
    while index < len(body) and body[index].isdigit():
        index += 1
    return namespace, body[index:]


class LiveFeedClient:
    """Socket.IO client running ``websocket.WebSocketApp`` in a daemon thread."""

    def __init__(
        self,
        url: str,
        *,
        max_reconnect_attempts: int = 5,
        verify_ssl: bool = True,
        thread_factory: Callable[..., Any] = threading.Thread,
        stop_event_factory: Callable[[], threading.Event] = threading.Event,
    ) -> None:
        self.url = str(url)
        self.socket_url = socket_url(url)
        self.max_reconnect_attempts = max(1, int(max_reconnect_attempts))
        self.verify_ssl = bool(verify_ssl)
        self._thread_factory = thread_factory
        self._stop_event_factory = stop_event_factory

        self._lock = threading.RLock()
        self._listeners: dict[str, list[Listener]] = {}
        self._ws: Optional[websocket.WebSocketApp] = None
        self._thread: Any = None
        self._stop: threading.Event = stop_event_factory()
        self._running = False
        self._connected = False
        self._token: Optional[str] = None
        self.reconnect_attempts = 0
        self.last_message_at: Optional[float] = None
        self.last_error: Optional[str] = None

    # ------------------------------------------------------------------ state

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def running(self) -> bool:
        return self._running

    @property
    def token(self) -> Optional[str]:
        return self._token

    # -------------------------------------------------------------- lifecycle

    def connect(self, token: Optional[str]) -> bool:
        """Start the feed thread; returns ``False`` if it was already running."""

        with self._lock:
            if self._running:
                return False
            self._token = token
            self._running = True
            self._stop = self._stop_event_factory()
            self.reconnect_attempts = 0
            self._thread = self._thread_factory(target=self._run, daemon=True)
        self._thread.start()
        return True

    def disconnect(self) -> None:
        with self._lock:
            self._running = False
            self._stop.set()
            ws = self._ws
            self._ws = None
            was_connected = self._connected
            self._connected = False
            self._listeners.clear()
        if ws is None:
            return
        try:
            if was_connected:
                ws.send("41")
            ws.close()
        except Exception as exc:
            log("ws.close.error", err=str(exc))
        log("ws.disconnected", url=self.url)

    def _run(self) -> None:
        backoff = 1.0
        while self._running:
            ws = websocket.WebSocketApp(
                self.socket_url,
                on_open=self._on_open,
                on_message=self._on_message,
                on_error=self._on_error,
                on_close=self._on_close,
            )
            with self._lock:
                if not self._running:
                    break
                self._ws = ws
            cert_reqs = ssl.CERT_REQUIRED if self.verify_ssl else ssl.CERT_NONE
            try:
                ws.run_forever(sslopt={"cert_reqs": cert_reqs})
            except Exception as exc:
                self._on_error(ws, exc)
            self._connected = False
            if not self._running:
                break

            if self.reconnect_attempts == 0:
                backoff = 1.0
            self.reconnect_attempts += 1
            if self.reconnect_attempts >= self.max_reconnect_attempts:
                log(
                    "ws.reconnect.failed",
                    url=self.url,
                    attempts=self.reconnect_attempts,
                    severity="error",
                )
                self._dispatch(ERROR_EVENT, {"message": "Max reconnect attempts reached"})
                self._running = False
                break
            sleep_for = min(backoff, MAX_BACKOFF) + random.uniform(0, 0.5)
            log("ws.reconnect.wait", seconds=round(sleep_for, 2), attempt=self.reconnect_attempts)
            if self._stop.wait(sleep_for):
                break
            backoff = min(backoff * 2.0, MAX_BACKOFF)

    # ------------------------------------------------------------- callbacks

    def _send(self, ws: Any, packet: str) -> None:
        try:
            ws.send(packet)
        except Exception as exc:
            log("ws.send.error", err=str(exc), packet=packet[:2])

    def _on_open(self, ws: Any) -> None:
        log("ws.open", url=self.socket_url)

    def _on_message(self, ws: Any, message: Any) -> None:
        if isinstance(message, bytes):
            message = message.decode("utf-8", errors="replace")
        text = str(message or "")
        if not text:
            return
        self.last_message_at = time.time()
        kind, body = text[0], text[1:]

        if kind == "0":
            auth = {"token": self._token} if self._token else None
            self._send(ws, "40" + (json.dumps(auth) if auth else ""))
        elif kind == "2":
            self._send(ws, "3")
        elif kind == "1":
            self._connected = False
        elif kind == "4":
            self._on_socketio_packet(body)

    def _on_socketio_packet(self, body: str) -> None:
        if not body:
            return
        kind, rest = body[0], body[1:]
        _namespace, payload = _split_packet(rest)

        if kind == "0":
            self._connected = True
            self.reconnect_attempts = 0
            log("ws.connected", url=self.url)
        elif kind == "1":
            self._connected = False
            log("ws.server_disconnect", url=self.url)
        elif kind == "2":
            try:
                packet = json.loads(payload)
            except ValueError:
                log("ws.packet.invalid", payload=payload[:200])
                return
            if not isinstance(packet, list) or not packet:
                return
            event = str(packet[0])
            data = packet[1] if len(packet) > 1 else None
            self._dispatch(event, data)
        elif kind == "4":
            try:
                detail: Any = json.loads(payload) if payload else {}
            except ValueError:
                detail = {"message": payload}
            self.last_error = str(detail.get("message") if isinstance(detail, dict) else detail)
            log("ws.connect_error", url=self.url, err=self.last_error)
            self._dispatch(ERROR_EVENT, detail)

    def _on_error(self, ws: Any, error: Any) -> None:
        self.last_error = str(error)
        log("ws.error", url=self.url, err=str(error))
        self._dispatch(ERROR_EVENT, {"message": str(error)})

    def _on_close(self, ws: Any, code: Any = None, msg: Any = None) -> None:
        self._connected = False
        log("ws.close", url=self.url, code=code, msg=msg)

    # ------------------------------------------------------------- listeners

    def on(self, event: str, callback: Listener) -> None:
        with self._lock:
            self._listeners.setdefault(event, []).append(callback)

    def off(self, event: str, callback: Optional[Listener] = None) -> None:
        with self._lock:
            if callback is None:
                self._listeners.pop(event, None)
                return
            callbacks = self._listeners.get(event)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)

    def _dispatch(self, event: str, data: Any) -> None:
        with self._lock:
            callbacks = list(self._listeners.get(event, ()))
        for callback in callbacks:
            try:
                callback(data)
            except Exception as exc:
                log("ws.listener.error", feed_event=event, err=str(exc), exc=exc)

    # ---------------------------------------------------------------- emits

    def emit(self, event: str, payload: Any) -> bool:
        """Send an event; silently skipped while not connected."""

        ws = self._ws
        if not self._connected or ws is None:
            return False
        self._send(ws, "42" + json.dumps([event, payload]))
        return True

    def subscribe_market(self, symbols: list[str]) -> bool:
        return self.emit("subscribe-market", {"symbols": list(symbols)})

    def unsubscribe_market(self, symbols: list[str]) -> bool:
        return self.emit("unsubscribe-market", {"symbols": list(symbols)})

    def subscribe_agent(self, agent_id: str) -> bool:
        return self.emit("subscribe-agent", {"agentId": agent_id})

    def unsubscribe_agent(self, agent_id: str) -> bool:
        return self.emit("unsubscribe-agent", {"agentId": agent_id})

    def get_live_data(self, symbol: str) -> bool:
        return self.emit("get-live-data", {"symbol": symbol})
