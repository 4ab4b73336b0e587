from __future__ import annotations

import hashlib
import time
from pathlib import Path
from types import SimpleNamespace

import pytest

from mariposa_app.ui import state
from mariposa_app.utils import envs, storage


@pytest.fixture
def session(monkeypatch: pytest.MonkeyPatch) -> dict:
    values: dict = {}
    monkeypatch.setattr(state, "st", SimpleNamespace(session_state=values))
    return values


def test_token_scope_is_stable_digest() -> None:
    expected = hashlib.sha256(b"tok-1").hexdigest()[:16]

    assert state.token_scope("tok-1") == expected
    assert state.token_scope("tok-2") != expected
    assert state.token_scope("") == "anonymous"


def test_token_scope_falls_back_to_stored_token(session: dict, isolated_storage: Path) -> None:
    assert state.token_scope() == "anonymous"

    storage.set_item(storage.TOKEN_KEY, "stored")

    assert state.token_scope() == state.token_scope("stored")


def test_ensure_keys_keeps_existing_values(session: dict, isolated_storage: Path, isolated_settings: Path) -> None:
    session["selected_symbol"] = "ETHUSDT"

    state.ensure_keys({"logs_limit": 50, "var_horizon": None})

    assert session["selected_symbol"] == "ETHUSDT"
    assert session["logs_limit"] == 50
    assert session["var_horizon"] == 1
    assert session["ui_theme"] == "dark"


def test_theme_prefers_storage_then_settings(session: dict, isolated_storage: Path, isolated_settings: Path) -> None:
    envs.update_settings(ui_theme="light")
    assert state.get_theme() == "light"

    assert state.toggle_theme() == "dark"
    assert storage.get_item(storage.THEME_KEY) == "dark"
    assert session["ui_theme"] == "dark"

    assert state.set_theme("sepia") == "dark"


def test_login_and_logout_round_trip(
    session: dict, isolated_storage: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    stopped: list[bool] = []
    monkeypatch.setattr(state, "stop_live_feed", lambda: stopped.append(True))
    monkeypatch.setattr(state, "clear_data_caches", lambda: None)
    monkeypatch.setattr(state, "log", lambda *args, **kwargs: None)

    state.store_login("tok", email="a@b.c", user_id="u1")
    assert state.is_authenticated()
    assert state.current_user_email() == "a@b.c"
    assert storage.get_item(storage.USER_ID_KEY) == "u1"

    state.logout()
    assert not state.is_authenticated()
    assert "user_email" not in session
    assert stopped == [True]


def test_holds_and_cooldown_are_reported(session: dict) -> None:
    state.set_auto_refresh_hold("agent_form", "Editing agent")
    state.set_auto_refresh_hold("blank", "  ")
    state.set_auto_refresh_cooldown("Settings saved", 30)

    holds = state.get_auto_refresh_holds()

    assert holds[:2] == ["Editing agent", "Auto refresh paused"]
    assert holds[2].startswith("Settings saved (")

    state.clear_auto_refresh_hold("agent_form")
    state.clear_auto_refresh_hold("blank")
    state.clear_auto_refresh_cooldown()
    assert state.get_auto_refresh_holds() == []
    assert "_auto_refresh_holds" not in session


def test_expired_cooldown_is_purged() -> None:
    values = {
        "_auto_refresh_cooldown_until": time.time() - 1,
        "_auto_refresh_cooldown_reason": "old",
    }

    assert state.get_auto_refresh_cooldown(values) is None
    assert values == {}


def test_refresh_interval_respects_pause_and_holds(isolated_storage: Path) -> None:
    assert state.refresh_interval(15, {}) == 15.0
    assert state.refresh_interval(0, {}) is None
    assert state.refresh_interval(None, {}) is None
    assert state.refresh_interval(15, {"_auto_refresh_holds": {"form": "Editing"}}) is None

    state.set_refresh_paused(True)
    assert state.is_refresh_paused()
    assert state.refresh_interval(15, {}) is None


class _RecordingBackend:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def get_real_time_analysis(self, symbol):
        self.calls.append(("real_time", symbol))
        return {"success": True, "data": {"consensus": {"confidence": 0.6}}}

    def get_chart_data(self, symbol, timeframe, *, limit):
        self.calls.append(("chart", symbol, timeframe, limit))
        return {"success": True, "data": {"klines": []}}


def test_loaders_forward_symbol_timeframe_and_limit(monkeypatch: pytest.MonkeyPatch) -> None:
    backend = _RecordingBackend()
    monkeypatch.setattr(state, "get_backend", lambda: backend)
    state.cached_real_time_analysis.clear()
    state.cached_chart_data.clear()

    state.cached_real_time_analysis("scope-a", "ETHUSDT")
    state.cached_chart_data("scope-a", "ETHUSDT", "1d", 252)
    state.cached_chart_data("scope-a", "ETHUSDT", "15m", 50)

    assert backend.calls == [
        ("real_time", "ETHUSDT"),
        ("chart", "ETHUSDT", "1d", 252),
        ("chart", "ETHUSDT", "15m", 50),
    ]
    state.cached_real_time_analysis.clear()
    state.cached_chart_data.clear()
