"""Error types raised by the backend client and helpers to present them."""

from __future__ import annotations

from typing import Any, Mapping


class BackendError(RuntimeError):
    """The backend answered with a non-2xx status or an unusable body."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        payload: Any = None,
        path: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.payload = payload
        self.path = path


class AuthenticationError(BackendError):
    """HTTP 401: the stored token is missing, expired or revoked."""


class BackendUnavailableError(BackendError):
    """Timeouts and connection failures; no HTTP status is available."""


_MOCK_TRIGGERS = (
    "timeout",
    "timed out",
    "network",
    "econnrefused",
    "connection refused",
    "connection aborted",
    "failed to establish",
    "500",
    "502",
    "503",
    "504",
)


def _payload_text(payload: Any, key: str) -> str:
    if isinstance(payload, Mapping):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def describe_error(exc: BaseException | None, fallback: str = "Something went wrong") -> str:
    """Return the text shown in an error toast for ``exc``.

    Preference order is the backend's ``error`` field, then its ``message``
    field, then the exception text.
    """

    if exc is None:
        return fallback
    payload = getattr(exc, "payload", None)
    for key in ("error", "message"):
        text = _payload_text(payload, key)
        if text:
            return text
    text = str(exc).strip()
    return text or fallback


def should_use_mock_data(exc: BaseException | None, *, enabled: bool) -> bool:
    """Return ``True`` when generated data may stand in for a failed call.

    Only transport-level failures and 5xx responses qualify. Authentication
    and validation errors always surface to the user.
    """

    if not enabled or exc is None:
        return False
    if isinstance(exc, AuthenticationError):
        return False
    if isinstance(exc, BackendUnavailableError):
        return True
    status = getattr(exc, "status", None)
    if isinstance(status, int):
        if 400 <= status < 500:
            return False
        if status >= 500:
            return True
    message = str(exc).lower()
    return any(trigger in message for trigger in _MOCK_TRIGGERS)
