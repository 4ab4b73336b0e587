"""Local key/value store standing in for the browser's ``localStorage``.

The dashboard keeps only a handful of values between sessions: the auth
token, the signed-in e-mail and small UI preferences. They live in a single
JSON document under the runtime directory. Every accessor swallows I/O and
decoding problems (logging them) and returns the caller's fallback, so a
broken store degrades to "signed out" instead of crashing a page.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any

from .file_io import atomic_write_text, read_json_file
from .log import log
from .paths import STORAGE_FILE
from .security import secure_file

TOKEN_KEY = "token"
USER_EMAIL_KEY = "userEmail"
USER_ID_KEY = "userId"
THEME_KEY = "theme"
REFRESH_PAUSED_KEY = "refreshPaused"

_LOCK = threading.RLock()

# Tests point this at a temporary file.
_STORAGE_PATH: Path = STORAGE_FILE


def _read_all() -> dict[str, Any]:
    try:
        payload = read_json_file(_STORAGE_PATH)
    except (OSError, ValueError) as exc:
        log("storage.read.error", path=str(_STORAGE_PATH), err=str(exc))
        return {}
    return payload if isinstance(payload, dict) else {}


def _write_all(payload: dict[str, Any]) -> bool:
    try:
        atomic_write_text(_STORAGE_PATH, json.dumps(payload, ensure_ascii=False, indent=2))
        secure_file(_STORAGE_PATH)
    except (OSError, TypeError, ValueError) as exc:
        log("storage.write.error", path=str(_STORAGE_PATH), err=str(exc))
        return False
    return True


def is_available() -> bool:
    """Return ``True`` when the storage directory is writable."""

    probe = "__storage_probe__"
    with _LOCK:
        payload = _read_all()
        payload[probe] = probe
        if not _write_all(payload):
            return False
        payload.pop(probe, None)
        return _write_all(payload)


def get_item(key: str, fallback: str | None = None) -> str | None:
    with _LOCK:
        value = _read_all().get(key)
    if value is None:
        return fallback
    return str(value)


def set_item(key: str, value: str) -> bool:
    with _LOCK:
        payload = _read_all()
        payload[key] = str(value)
        return _write_all(payload)


def remove_item(key: str) -> bool:
    with _LOCK:
        payload = _read_all()
        if key not in payload:
            return True
        payload.pop(key)
        return _write_all(payload)


def clear() -> bool:
    with _LOCK:
        return _write_all({})


def get_json(key: str, fallback: Any = None) -> Any:
    """Return the JSON-decoded value stored under ``key``."""

    raw = get_item(key)
    if raw is None:
        return fallback
    try:
        return json.loads(raw)
    except ValueError as exc:
        log("storage.json.decode_error", key=key, err=str(exc))
        return fallback


def set_json(key: str, value: Any) -> bool:
    try:
        encoded = json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        log("storage.json.encode_error", key=key, err=str(exc))
        return False
    return set_item(key, encoded)


def clear_auth() -> None:
    """Forget the stored token and identity, used on logout and HTTP 401."""

    for key in (TOKEN_KEY, USER_EMAIL_KEY, USER_ID_KEY):
        remove_item(key)
