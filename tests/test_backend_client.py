from __future__ import annotations

from types import SimpleNamespace

import pytest

from mariposa_app.ui import actions, backend_client
from mariposa_app.utils import storage
from mariposa_app.utils.errors import AuthenticationError, BackendError, BackendUnavailableError
from mariposa_app.utils.models import ApiResponse


@pytest.fixture
def toasts(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, str]]:
    recorded: list[tuple[str, str]] = []
    for module in (actions, backend_client):
        monkeypatch.setattr(module, "notify_error", lambda text, **_: recorded.append(("error", text)))
        monkeypatch.setattr(module, "notify_info", lambda text, **_: recorded.append(("info", text)))
    monkeypatch.setattr(actions, "notify_success", lambda text, **_: recorded.append(("success", text)))
    monkeypatch.setattr(backend_client, "log", lambda *args, **kwargs: None)
    monkeypatch.setattr(actions, "log", lambda *args, **kwargs: None)
    return recorded


def _settings(monkeypatch: pytest.MonkeyPatch, *, mock_fallback: bool) -> None:
    monkeypatch.setattr(backend_client, "get_settings", lambda: SimpleNamespace(mock_fallback=mock_fallback))


def _raise(exc: BaseException):
    def fetch():
        raise exc

    return fetch


def test_call_backend_returns_data_on_success(toasts) -> None:
    result = backend_client.call_backend(
        lambda: ApiResponse(success=True, data={"price": 64000}),
        fallback=dict,
        error_message="Failed to load market data",
    )

    assert result == {"price": 64000}
    assert toasts == []


def test_unsuccessful_response_falls_back_with_toast(toasts) -> None:
    result = backend_client.call_backend(
        lambda: ApiResponse(success=False, error="Symbol not supported"),
        fallback=list,
        error_message="Failed to load analysis",
    )

    assert result == []
    assert toasts == [("error", "Failed to load analysis: Symbol not supported")]


def test_exception_falls_back_silently_when_notify_off(monkeypatch, toasts) -> None:
    _settings(monkeypatch, mock_fallback=False)

    result = backend_client.call_backend(
        _raise(BackendError("Agent not found", status=404)),
        fallback=lambda: None,
        error_message="Failed to load agent",
        notify=False,
    )

    assert result is None
    assert toasts == []


def test_outage_uses_mock_when_enabled(monkeypatch, toasts) -> None:
    _settings(monkeypatch, mock_fallback=True)

    result = backend_client.call_backend(
        _raise(BackendUnavailableError("Connection refused")),
        fallback=list,
        error_message="Failed to load whales",
        mock=lambda: [{"symbol": "BTCUSDT"}],
    )

    assert result == [{"symbol": "BTCUSDT"}]
    assert toasts == [("info", "Backend unavailable, showing generated data")]


def test_outage_without_opt_in_reports_error(monkeypatch, toasts) -> None:
    _settings(monkeypatch, mock_fallback=False)

    result = backend_client.call_backend(
        _raise(BackendUnavailableError("Connection refused")),
        fallback=list,
        error_message="Failed to load whales",
        mock=lambda: [{"symbol": "BTCUSDT"}],
    )

    assert result == []
    assert toasts == [("error", "Failed to load whales: Connection refused")]


def test_authentication_errors_never_use_mock(monkeypatch, toasts) -> None:
    _settings(monkeypatch, mock_fallback=True)

    result = backend_client.call_backend(
        _raise(AuthenticationError("Token expired", status=401)),
        fallback=list,
        error_message="Failed to load agents",
        mock=lambda: ["mock"],
    )

    assert result == []
    assert toasts == [("error", "Failed to load agents: Token expired")]


def test_perform_action_toasts_and_invalidates(monkeypatch, toasts) -> None:
    cleared: list[bool] = []
    monkeypatch.setattr(
        backend_client, "st", SimpleNamespace(cache_data=SimpleNamespace(clear=lambda: cleared.append(True)))
    )

    response = backend_client.perform_action(
        lambda: ApiResponse(success=True, data={"status": "active"}),
        success_message="Agent started",
        error_message="Failed to start agent",
    )

    assert response.data == {"status": "active"}
    assert cleared == [True]
    assert toasts == [("success", "Agent started")]


def test_perform_action_reports_unsuccessful_response(monkeypatch, toasts) -> None:
    cleared: list[bool] = []
    monkeypatch.setattr(
        backend_client, "st", SimpleNamespace(cache_data=SimpleNamespace(clear=lambda: cleared.append(True)))
    )

    response = backend_client.perform_action(
        lambda: ApiResponse(success=False, error="Insufficient balance"),
        success_message="Agent created",
        error_message="Failed to create agent",
    )

    assert response is None
    assert cleared == []
    assert toasts == [("error", "Failed to create agent: Insufficient balance")]


def test_handle_unauthorized_clears_token_and_session(monkeypatch, isolated_storage, toasts) -> None:
    session_state = {"token": "jwt", "user_email": "a@b.c", "user_id": "u1", "theme": "dark"}
    monkeypatch.setattr(backend_client, "st", SimpleNamespace(session_state=session_state))
    storage.set_item(storage.TOKEN_KEY, "jwt")

    backend_client.handle_unauthorized()

    assert storage.get_item(storage.TOKEN_KEY) is None
    assert session_state == {"theme": "dark"}


def test_build_backend_uses_active_environment(isolated_settings) -> None:
    from mariposa_app.utils import envs

    settings = envs.update_settings(environment="development", http_retry_attempts=4)

    api = backend_client.build_backend(settings)

    assert api.base_url == "http://localhost:3001/api"
    assert api.retry_attempts == 4
    assert api.timeouts["bulk"] == settings.bulk_timeout_s
