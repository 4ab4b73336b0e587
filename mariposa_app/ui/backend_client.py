from __future__ import annotations

from typing import Any, Callable, TypeVar

import streamlit as st

from ..utils import storage
from ..utils.backend_api import BackendAPI
from ..utils.envs import Settings, active_backend_url, get_settings
from ..utils.errors import AuthenticationError, describe_error, should_use_mock_data
from ..utils.log import log
from ..utils.models import ApiResponse
from .actions import notify_error, notify_info, notify_success, run_action

T = TypeVar("T")

AUTH_SESSION_KEYS = ("token", "user_email", "user_id")


def _stored_token() -> str | None:
    return storage.get_item(storage.TOKEN_KEY)


def handle_unauthorized() -> None:
    """Forget the credentials after the backend rejected them with HTTP 401."""

    storage.clear_auth()
    state = st.session_state
    for key in AUTH_SESSION_KEYS:
        state.pop(key, None)
    log("auth.unauthorized")


def _timeouts(settings: Settings) -> dict[str, float]:
    return {
        "analysis": settings.analysis_timeout_s,
        "multi_timeframe": settings.multi_timeframe_timeout_s,
        "bulk": settings.bulk_timeout_s,
        "multi_token": settings.multi_token_timeout_s,
    }


def build_backend(settings: Settings) -> BackendAPI:
    return BackendAPI(
        active_backend_url(settings),
        token_provider=_stored_token,
        on_unauthorized=handle_unauthorized,
        timeout=settings.http_timeout_s,
        timeouts=_timeouts(settings),
        verify_ssl=settings.verify_ssl,
        retry_attempts=settings.http_retry_attempts,
    )


@st.cache_resource(show_spinner=False)
def _cached_backend(signature: tuple[Any, ...]) -> BackendAPI:
    return build_backend(get_settings())


def get_backend() -> BackendAPI:
    """Return the shared client, rebuilt whenever the connection settings change."""

    settings = get_settings()
    signature = (
        active_backend_url(settings),
        settings.http_timeout_s,
        tuple(sorted(_timeouts(settings).items())),
        settings.verify_ssl,
        settings.http_retry_attempts,
    )
    return _cached_backend(signature)


def call_backend(
    fetch: Callable[[], ApiResponse],
    *,
    fallback: Callable[[], T],
    error_message: str,
    notify: bool = True,
    mock: Callable[[], T] | None = None,
) -> Any:
    """Run a read call and return its ``data`` or a safe default.

    A response with ``success: false`` or any exception produces an error
    toast (unless ``notify`` is off) and ``fallback()``. When the mock
    fallback is enabled in settings and the failure looks like an outage,
    ``mock()`` is returned instead.
    """

    try:
        response = fetch()
    except AuthenticationError as exc:
        if notify:
            notify_error(f"{error_message}: {describe_error(exc)}")
        return fallback()
    except Exception as exc:
        if mock is not None and should_use_mock_data(exc, enabled=get_settings().mock_fallback):
            log("ui.backend.mock_fallback", err=str(exc))
            if notify:
                notify_info("Backend unavailable, showing generated data")
            return mock()
        log("ui.backend.error", message=error_message, err=str(exc))
        if notify:
            notify_error(f"{error_message}: {describe_error(exc)}")
        return fallback()

    if not isinstance(response, ApiResponse) or not response.success:
        detail = getattr(response, "error", None) or getattr(response, "message", None)
        log("ui.backend.unsuccessful", message=error_message, detail=detail)
        if notify:
            notify_error(f"{error_message}: {detail}" if detail else error_message)
        return fallback()
    return response.data


def perform_action(
    action: Callable[[], ApiResponse],
    *,
    success_message: str,
    error_message: str,
    invalidate: bool = True,
) -> ApiResponse | None:
    """Run a mutating call; toast the outcome and drop cached reads on success."""

    def _checked() -> ApiResponse:
        response = action()
        if not response.success:
            raise RuntimeError(response.error or response.message or error_message)
        return response

    def _after(_response: ApiResponse) -> None:
        if invalidate:
            st.cache_data.clear()

    return run_action(
        _checked,
        success=_after,
        success_message=success_message,
        error_message=error_message,
        description=getattr(action, "__name__", None),
    )


__all__ = [
    "build_backend",
    "call_backend",
    "get_backend",
    "handle_unauthorized",
    "notify_error",
    "notify_success",
    "perform_action",
]
