"""Process-wide cache of the latest live-feed payloads.

The feed thread writes, Streamlit script runs read. Payloads are kept per
``(event, key)`` where the key is the symbol or agent the message refers to,
plus a bounded history of recent messages for the activity view. Nothing is
persisted: a restart begins with an empty cache.
"""

from __future__ import annotations

import copy
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, Mapping, Optional

from .formatting import coerce_float

DEFAULT_KEY = "_"
HISTORY_LIMIT = 200

# Events whose payload is a ``{type, data}`` envelope; each type is kept apart.
TYPED_EVENTS = frozenset({"market-update"})

_KEY_FIELDS = ("symbol", "agentId", "agent_id", "id")


def _clone_payload(payload: Any) -> Any:
    """Return a copy of the payload to avoid cross-thread mutation."""

    try:
        return copy.deepcopy(payload)
    except (TypeError, copy.Error):
        return copy.copy(payload)


def channel(event: str, payload: Any) -> str:
    """Cache channel for ``event``: ``market-update:ticker``, ``market-update:kline``, ..."""

    event = str(event)
    if event in TYPED_EVENTS and isinstance(payload, Mapping):
        kind = str(payload.get("type") or "").strip().lower()
        if kind:
            return f"{event}:{kind}"
    return event


def payload_key(payload: Any) -> str:
    """Pick the symbol/agent identifier a payload refers to."""

    if isinstance(payload, Mapping):
        for field in _KEY_FIELDS:
            value = payload.get(field)
            if value not in (None, ""):
                return str(value).strip().upper() if field == "symbol" else str(value).strip()
        nested = payload.get("data")
        if isinstance(nested, Mapping):
            return payload_key(nested)
    return DEFAULT_KEY


@dataclass(frozen=True)
class RealtimeRecord:
    event: str
    key: str
    payload: Any
    received_at: float

    def as_dict(self) -> Dict[str, Any]:
        return {
            "event": self.event,
            "key": self.key,
            "payload": _clone_payload(self.payload),
            "received_at": self.received_at,
        }


class RealtimeCache:
    """Thread-safe latest-value store with a bounded message history."""

    def __init__(self, history_limit: int = HISTORY_LIMIT) -> None:
        self._lock = threading.Lock()
        self._latest: Dict[str, Dict[str, RealtimeRecord]] = {}
        self._history: Deque[RealtimeRecord] = deque(maxlen=max(1, int(history_limit)))
        self.last_update: Optional[float] = None

    def update(self, event: str, payload: Any, *, key: Optional[str] = None, now: Optional[float] = None) -> RealtimeRecord:
        record = RealtimeRecord(
            event=channel(event, payload),
            key=key if key is not None else payload_key(payload),
            payload=_clone_payload(payload),
            received_at=time.time() if now is None else float(now),
        )
        with self._lock:
            self._latest.setdefault(record.event, {})[record.key] = record
            self._history.append(record)
            self.last_update = record.received_at
        return record

    def latest(self, event: str, key: str = DEFAULT_KEY) -> Any:
        """Return the newest payload for ``(event, key)`` or ``None``."""

        record = self.latest_record(event, key)
        return _clone_payload(record.payload) if record is not None else None

    def latest_record(self, event: str, key: str = DEFAULT_KEY) -> Optional[RealtimeRecord]:
        """Symbols are stored upper-cased, so a lower-case lookup also matches."""

        with self._lock:
            records = self._latest.get(event, {})
            return records.get(key) or records.get(key.upper())

    def snapshot(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        with self._lock:
            return {
                event: {key: record.as_dict() for key, record in records.items()}
                for event, records in self._latest.items()
            }

    def recent(self, limit: int = 50) -> list[Dict[str, Any]]:
        """Newest first."""

        with self._lock:
            items = list(self._history)
        items.reverse()
        return [record.as_dict() for record in items[: max(int(limit), 0)]]

    def event_counts(self) -> Dict[str, int]:
        with self._lock:
            return {event: len(records) for event, records in self._latest.items()}

    def clear(self) -> None:
        with self._lock:
            self._latest.clear()
            self._history.clear()
            self.last_update = None


_CACHE = RealtimeCache()


def get_realtime_cache() -> RealtimeCache:
    return _CACHE


def live_ticker(symbol: str, cache: Optional[RealtimeCache] = None) -> Optional[Dict[str, Any]]:
    """Newest pushed ticker for ``symbol``, unwrapped, or ``None`` without a price."""

    source = cache if cache is not None else _CACHE
    payload = source.latest("market-update:ticker", symbol)
    data = payload.get("data") if isinstance(payload, Mapping) else None
    if not isinstance(data, Mapping):
        return None
    if coerce_float(data.get("price")) is None:
        return None
    return dict(data)


def live_agent_activity(agent_id: str, cache: Optional[RealtimeCache] = None) -> Dict[str, Any]:
    """Latest pushed ``performance`` and ``trade`` for an agent, when any arrived."""

    source = cache if cache is not None else _CACHE
    activity: Dict[str, Any] = {}
    for event, field in (("performance-update", "performance"), ("trade-update", "trade")):
        record = source.latest_record(event, str(agent_id))
        if record is None or not isinstance(record.payload, Mapping):
            continue
        body = record.payload.get(field)
        if isinstance(body, Mapping):
            activity[field] = _clone_payload(body)
            activity[f"{field}_at"] = record.received_at
    return activity


def overlay_live_ticker(
    payload: Any, symbol: str, cache: Optional[RealtimeCache] = None
) -> tuple[Any, bool]:
    """Lay the pushed ticker over a REST market payload; fields it lacks stay."""

    live = live_ticker(symbol, cache)
    if live is None:
        return payload, False
    merged = dict(payload) if isinstance(payload, Mapping) else {}
    merged.update({name: value for name, value in live.items() if value is not None})
    return merged, True
